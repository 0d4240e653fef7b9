"""Apigee proxy bundle -> OpenAPI 3.0 conversion."""

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .archive import ProxyArchive
from .document import check_document, finalize_document, merge_contribution, new_document
from .errors import ArchiveError, MarkupError
from .flows import resolve_endpoint_document
from .markup import attribute, child, parse_markup, root_of, text_of
from .models import ConversionResult, Diagnostic, ProxyMetadata, Severity
from .policies import build_parameter_table

logger = logging.getLogger(__name__)


def parse_descriptor(xml_text: str, proxy_name: str) -> ProxyMetadata:
    """
    Read display name, description and revision from an APIProxy descriptor

    Raises:
        MarkupError: if the document is malformed or not an APIProxy
    """
    proxy = root_of(parse_markup(xml_text), 'APIProxy')
    return ProxyMetadata(
        name=proxy_name,
        display_name=text_of(child(proxy, 'DisplayName')) or None,
        description=text_of(child(proxy, 'Description')) or None,
        revision=attribute(proxy, 'revision'),
    )


class ProxyBundleConverter:
    """Convert an Apigee API proxy bundle to an OpenAPI 3.0 specification

    The converter holds no per-conversion state, so one instance can serve
    several conversions at once.
    """

    def convert(self, archive: ProxyArchive, proxy_name: Optional[str] = None,
                hostnames: Iterable[str] = ()) -> ConversionResult:
        """
        Generate the OpenAPI document for one proxy

        Args:
            archive: Bundle entries
            proxy_name: Proxy name; detected from the descriptor entry if omitted
            hostnames: Hostnames used to build server URLs

        Returns:
            ConversionResult with the finalized document and diagnostics
        """
        diagnostics: List[Diagnostic] = []

        if not proxy_name:
            proxy_name = archive.detect_proxy_name()
            if not proxy_name:
                raise ArchiveError("No API proxy XML found in apiproxy/")

        metadata = self._read_metadata(archive, proxy_name, diagnostics)
        document = new_document(metadata, hostnames)

        # the table has to be complete before any endpoint is resolved
        policies = archive.policy_entries()
        table, problems = build_parameter_table(policies)
        diagnostics.extend(problems)
        logger.info(f"{proxy_name}: {len(table)} parameter(s) from {len(policies)} policies")

        for source, xml_text in archive.endpoint_entries():
            try:
                contribution = resolve_endpoint_document(xml_text, table, source)
            except Exception as e:
                logger.error(f"Error resolving proxy endpoint {source}: {e}", exc_info=True)
                diagnostics.append(Diagnostic(Severity.ERROR, source, f"Proxy endpoint skipped: {e}"))
                continue
            diagnostics.extend(contribution.diagnostics)
            document, problems = merge_contribution(document, contribution)
            diagnostics.extend(problems)

        document = finalize_document(document)
        diagnostics.extend(check_document(document))

        result = ConversionResult(document=document, diagnostics=diagnostics)
        paths, operations, tags = result.summary()
        logger.info(f"{proxy_name}: {paths} paths, {operations} operations, {tags} tags, "
                    f"{len(diagnostics)} diagnostic(s)")
        return result

    def _read_metadata(self, archive: ProxyArchive, proxy_name: str,
                       diagnostics: List[Diagnostic]) -> ProxyMetadata:
        source = archive.descriptor_name(proxy_name)
        if source not in archive:
            logger.warning(f"Could not find API proxy XML: {source}")
            diagnostics.append(Diagnostic(Severity.WARNING, source, "Proxy descriptor not found"))
            return ProxyMetadata(name=proxy_name)
        try:
            return parse_descriptor(archive.read_text(source), proxy_name)
        except MarkupError as e:
            logger.warning(f"Could not load API proxy XML {source}: {e}")
            diagnostics.append(Diagnostic(Severity.WARNING, source, f"Proxy descriptor skipped: {e}"))
            return ProxyMetadata(name=proxy_name)


def convert_archive(archive: ProxyArchive, proxy_name: Optional[str] = None,
                    hostnames: Iterable[str] = ()) -> ConversionResult:
    return ProxyBundleConverter().convert(archive, proxy_name, hostnames)


def convert_bundle(data: bytes, proxy_name: Optional[str] = None,
                   hostnames: Iterable[str] = ()) -> ConversionResult:
    """Convert a zipped bundle held in memory"""
    return convert_archive(ProxyArchive.from_bytes(data), proxy_name, hostnames)


@dataclass
class ConversionJob:
    """One proxy to convert as part of a batch"""
    proxy_name: str
    bundle: bytes
    hostnames: Sequence[str] = field(default_factory=tuple)


def convert_many(jobs: Sequence[ConversionJob],
                 workers: int = 4) -> List[Tuple[ConversionJob, Optional[ConversionResult], Optional[Exception]]]:
    """
    Convert several bundles in parallel

    Each conversion builds its own document and parameter table. Results
    come back in job order as (job, result, error) with exactly one of
    result and error set.
    """
    converter = ProxyBundleConverter()

    def run(job: ConversionJob) -> ConversionResult:
        return converter.convert(ProxyArchive.from_bytes(job.bundle), job.proxy_name, job.hostnames)

    outcomes = []
    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures = [executor.submit(run, job) for job in jobs]
        for job, future in zip(jobs, futures):
            try:
                outcomes.append((job, future.result(), None))
            except ArchiveError as e:
                logger.error(f"Error converting {job.proxy_name}: {e}")
                outcomes.append((job, None, e))
            except Exception as e:
                logger.error(f"Unexpected error converting {job.proxy_name}: {e}", exc_info=True)
                outcomes.append((job, None, e))
    return outcomes
