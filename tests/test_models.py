"""
Unit tests for cortexclient models and exceptions.

Tests JSON decoding (from_dict), observable payloads and Outcome invariants.
Run with: pytest tests/test_models.py -v
"""

import io

import pytest

from cortexclient.core.exceptions import (
    CortexError,
    JobFailedError,
    JobTimeoutError,
    RateLimitedError,
    RemoteError,
    SubmissionError,
)
from cortexclient.models import (
    PAP,
    TLP,
    AnalyzerDescriptor,
    Artifact,
    FileStream,
    Inline,
    Job,
    JobStatus,
    Outcome,
    Report,
    Taxonomy,
    TaxonomyLevel,
    is_file,
)


class TestObservable:
    """Tests for Inline and FileStream."""

    def test_inline_payload(self):
        """Inline payload carries data, type and labels as ints."""
        obs = Inline("domain", "example.org", tlp=TLP.GREEN, pap=PAP.WHITE)
        assert obs.kind() == "domain"
        assert obs.describe() == "example.org"
        assert obs.to_payload() == {"data": "example.org", "dataType": "domain", "tlp": 1, "pap": 0}

    def test_inline_optional_fields(self):
        obs = Inline("ip", "8.8.8.8", parameters={"max_age": 30})
        assert obs.to_payload()["parameters"] == {"max_age": 30}
        assert "message" not in obs.to_payload()

    def test_inline_immutable(self):
        """Inline values can be shared between threads because they cannot change."""
        obs = Inline("ip", "8.8.8.8")
        with pytest.raises(AttributeError):
            obs.data = "1.1.1.1"

    def test_file_meta(self):
        obs = FileStream(io.BytesIO(b"x"), "report.pdf", tlp=TLP.RED)
        assert obs.kind() == "file"
        assert obs.describe() == "report.pdf"
        assert obs.meta() == {"dataType": "file", "tlp": 3, "pap": 2}
        assert is_file(obs)
        assert not is_file(Inline("ip", "8.8.8.8"))

    def test_with_reader_copies_metadata(self):
        """with_reader swaps the reader and keeps everything else."""
        original = FileStream(io.BytesIO(b"a"), "a.bin", data_type="file", tlp=TLP.GREEN)
        branch_reader = io.BytesIO(b"a")
        copy = original.with_reader(branch_reader)

        assert copy.reader is branch_reader
        assert original.reader is not branch_reader
        assert (copy.filename, copy.data_type, copy.tlp, copy.pap) == ("a.bin", "file", TLP.GREEN, PAP.AMBER)


class TestAnalyzerDescriptor:

    def test_from_dict(self):
        analyzer = AnalyzerDescriptor.from_dict({
            "id": "a1",
            "name": "VirusTotal_GetReport_3_0",
            "dataTypeList": ["file", "hash", "domain"],
            "baseConfig": "VirusTotal",
        })
        assert analyzer.accepts("hash")
        assert not analyzer.accepts("ip")
        assert analyzer.base_config == "VirusTotal"

    def test_round_trip_dict(self):
        analyzer = AnalyzerDescriptor(id="a1", name="Shodan_Host_1_0", data_types=("ip",), rate=1, rate_unit="Second")
        assert AnalyzerDescriptor.from_dict(analyzer.to_dict()) == analyzer

    def test_missing_data_types(self):
        """An analyzer without dataTypeList accepts nothing."""
        assert not AnalyzerDescriptor.from_dict({"id": "x", "name": "x"}).accepts("ip")


class TestJob:

    def test_from_dict(self):
        job = Job.from_dict({
            "id": "AWk5",
            "analyzerId": "Abuse_1_0",
            "status": "InProgress",
            "dataType": "ip",
            "data": "8.8.8.8",
            "tlp": 2,
            "createdAt": 1554300000000,
        })
        assert job.status == JobStatus.IN_PROGRESS
        assert not job.status.is_final
        assert job.analyzer_id == "Abuse_1_0"
        assert job.created_at == 1554300000000

    def test_legacy_artifact_shape(self):
        """Older servers nest the observable under artifact.attributes."""
        job = Job.from_dict({
            "_id": "old-1",
            "analyzerID": "Legacy_1_0",
            "status": "Success",
            "artifact": {"data": "evil.example.net", "attributes": {"dataType": "domain", "tlp": 1}},
        })
        assert job.id == "old-1"
        assert job.analyzer_id == "Legacy_1_0"
        assert job.data_type == "domain"
        assert job.data == "evil.example.net"
        assert job.tlp == 1
        assert job.status.is_final

    def test_unknown_status(self):
        """An unknown status is treated as still waiting."""
        assert JobStatus.parse("Queued") == JobStatus.WAITING
        assert JobStatus.parse(None) == JobStatus.WAITING


class TestReport:

    def test_max_level(self):
        report = Report(
            job=Job(id="j"),
            success=True,
            taxonomies=(
                Taxonomy("A", "NS", 1, TaxonomyLevel.SAFE),
                Taxonomy("B", "NS", 2, TaxonomyLevel.MALICIOUS),
                Taxonomy("C", "NS", 3, TaxonomyLevel.SUSPICIOUS),
            ),
        )
        assert report.max_level() == TaxonomyLevel.MALICIOUS

    def test_no_taxonomies(self):
        assert Report(job=Job(id="j"), success=True).max_level() is None

    def test_unknown_level_defaults_to_info(self):
        assert Taxonomy.from_dict({"level": "critical"}).level == TaxonomyLevel.INFO

    def test_failed_report(self):
        report = Report.from_dict({
            "id": "j",
            "status": "Failure",
            "report": {"success": False, "errorMessage": "Invalid API key"},
        })
        assert report.success is False
        assert report.error_message == "Invalid API key"
        assert report.taxonomies == ()

    def test_artifact_shapes(self):
        """Artifacts decode from both dataType/data and attributes shapes."""
        new = Artifact.from_dict({"dataType": "ip", "data": "1.2.3.4", "tags": ["c2"]})
        old = Artifact.from_dict({"data": "x.example", "attributes": {"dataType": "domain"}})
        assert (new.data_type, new.data, new.tags) == ("ip", "1.2.3.4", ("c2",))
        assert (old.data_type, old.data) == ("domain", "x.example")


class TestOutcome:

    analyzer = AnalyzerDescriptor(id="a1", name="Abuse", data_types=("ip",))

    def test_report_outcome(self):
        report = Report(job=Job(id="j"), success=True, taxonomies=(Taxonomy("p", "n", 1, TaxonomyLevel.SAFE),))
        outcome = Outcome(self.analyzer, report=report)
        assert outcome.ok
        assert outcome.summary() == "1 taxonomies, max level safe"

    def test_error_outcome(self):
        outcome = Outcome(self.analyzer, error=JobTimeoutError(0.05))
        assert not outcome.ok
        assert outcome.summary() == "JobTimeoutError: job passed maximum execution time 0.05s"
        assert str(outcome).startswith("Abuse: ")

    def test_exactly_one_of_report_or_error(self):
        """An Outcome is a report or a failure, never both or neither."""
        with pytest.raises(ValueError):
            Outcome(self.analyzer)
        with pytest.raises(ValueError):
            Outcome(self.analyzer, report=Report(job=Job(id="j"), success=True), error=CortexError("x"))


class TestExceptions:

    def test_context_in_message(self):
        error = CortexError("boom", analyzer="Abuse_1_0", job_id="j1")
        assert str(error) == "boom | analyzer=Abuse_1_0 | job=j1"

    def test_with_context_keeps_existing(self):
        """with_context fills missing fields only."""
        error = JobTimeoutError(5, job_id="j1").with_context(analyzer="A", job_id="other")
        assert error.job_id == "j1"
        assert error.analyzer == "A"
        assert "analyzer=A" in str(error)

    def test_remote_error_type_prefix(self):
        error = RemoteError("db down", error_type="InternalError", status_code=500)
        assert str(error) == "InternalError: db down"

    def test_hierarchy(self):
        """Failures are catchable through the Cortex base class."""
        assert issubclass(JobFailedError, RemoteError)
        for cls in (SubmissionError, RateLimitedError, RemoteError, JobTimeoutError):
            assert issubclass(cls, CortexError)

    def test_submission_error_cause(self):
        cause = ConnectionError("reset")
        assert SubmissionError("failed", cause=cause).cause is cause
