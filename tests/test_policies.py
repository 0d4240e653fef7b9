from apigee2openapi.markup import parse_markup
from apigee2openapi.models import ExtractedParameter, ParameterLocation, Severity
from apigee2openapi.policies import build_parameter_table, extract_parameters, lookup, parse_policy


class TestExtractParameters:
    def test_header_rule(self, policy_xml):
        params = extract_parameters(parse_markup(policy_xml("extractSessionId", headers=[("X-Session", "{id}")])))
        assert params == [ExtractedParameter("extractSessionId", ParameterLocation.HEADER, "X-Session", "{id}")]

    def test_headers_before_query_params(self, policy_xml):
        xml = policy_xml("ev", headers=[("h1", "{a}"), ("h2", "{b}")], queries=[("q", "{c}")])
        params = extract_parameters(parse_markup(xml))
        assert [(p.kind, p.name) for p in params] == [
            (ParameterLocation.HEADER, "h1"),
            (ParameterLocation.HEADER, "h2"),
            (ParameterLocation.QUERY, "q"),
        ]

    def test_first_pattern_wins(self):
        xml = '<ExtractVariables name="ev"><Header name="h"><Pattern>{a}</Pattern><Pattern>b-{b}</Pattern></Header></ExtractVariables>'
        assert extract_parameters(parse_markup(xml))[0].example == "{a}"

    def test_pattern_with_attributes(self):
        xml = ('<ExtractVariables name="ev"><QueryParam name="id">'
               '<Pattern ignoreCase="true">{id}</Pattern></QueryParam></ExtractVariables>')
        params = extract_parameters(parse_markup(xml))
        assert params == [ExtractedParameter("ev", ParameterLocation.QUERY, "id", "{id}")]

    def test_rule_without_pattern_skipped(self):
        xml = '<ExtractVariables name="ev"><Header name="h"/><QueryParam name="q"><Pattern>{q}</Pattern></QueryParam></ExtractVariables>'
        assert [p.name for p in extract_parameters(parse_markup(xml))] == ["q"]

    def test_response_source_ignored(self, policy_xml):
        xml = policy_xml("ev", headers=[("h", "{a}")], source="response")
        assert extract_parameters(parse_markup(xml)) == []

    def test_request_source_kept(self, policy_xml):
        xml = policy_xml("ev", headers=[("h", "{a}")], source="request")
        assert len(extract_parameters(parse_markup(xml))) == 1

    def test_other_policy_kind(self):
        assert extract_parameters(parse_markup('<AssignMessage name="am"/>')) == []

    def test_missing_name(self):
        xml = '<ExtractVariables><Header name="h"><Pattern>{a}</Pattern></Header></ExtractVariables>'
        assert extract_parameters(parse_markup(xml)) == []

    def test_singleton_and_sequence_equivalent(self, policy_xml):
        single = policy_xml("ev", headers=[("X-Session", "{id}")])
        doubled = policy_xml("ev", headers=[("X-Session", "{id}"), ("X-Other", "{o}")])
        from_single = extract_parameters(parse_markup(single))
        from_sequence = [p for p in extract_parameters(parse_markup(doubled)) if p.name != "X-Other"]
        assert set(from_single) == set(from_sequence)


class TestParameterTable:
    def test_malformed_policy_becomes_warning(self, policy_xml):
        table, diagnostics = build_parameter_table([
            ("apiproxy/policies/bad.xml", "<ExtractVariables"),
            ("apiproxy/policies/ev.xml", policy_xml("ev", queries=[("q", "{q}")])),
        ])
        assert [p.name for p in table] == ["q"]
        assert len(diagnostics) == 1
        assert diagnostics[0].severity is Severity.WARNING
        assert diagnostics[0].source == "apiproxy/policies/bad.xml"

    def test_parse_policy_never_raises(self):
        params, diagnostics = parse_policy("", "empty.xml")
        assert params == []
        assert diagnostics[0].source == "empty.xml"

    def test_lookup_returns_all_entries(self, policy_xml):
        table, _ = build_parameter_table([
            ("a.xml", policy_xml("ev", headers=[("h", "{h}")], queries=[("q", "{q}")])),
            ("b.xml", policy_xml("other", headers=[("x", "{x}")])),
        ])
        assert [p.name for p in lookup(table, "ev")] == ["h", "q"]
        assert lookup(table, "missing") == []
