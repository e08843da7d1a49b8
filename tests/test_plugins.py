import pytest

import sample_jobs
from tenant_cadence import metrics
from tenant_cadence.errors import ConfigurationError
from tenant_cadence.params import JobParameters
from tenant_cadence.plugins import LogPayloadJob, load_job, run_job


def test_load_job_class_and_function():
    assert load_job("sample_jobs:RecordingJob") is sample_jobs.RecordingJob
    assert load_job("sample_jobs:record_payload") is sample_jobs.record_payload
    assert load_job("tenant_cadence.plugins:LogPayloadJob") is LogPayloadJob


@pytest.mark.parametrize(
    "path",
    [
        "sample_jobs",
        "sample_jobs:",
        ":RecordingJob",
        "no_such_module_xyz:Job",
        "sample_jobs:Missing",
        "sample_jobs:NotAJob",
        "sample_jobs:NOT_CALLABLE",
    ],
)
def test_load_job_errors(path):
    with pytest.raises(ConfigurationError):
        load_job(path)


def test_run_job_instantiates_class():
    params = JobParameters.from_mapping({"a": 1}).merged_with_tenant("t1")
    result = run_job("sample_jobs:RecordingJob", "t1:job-v1", params)
    assert result == {"a": 1, "tenantId": "t1"}
    assert sample_jobs.RECORDED == [params]


def test_run_job_calls_function():
    params = JobParameters()
    assert run_job("sample_jobs:record_payload", "t1:job-v1", params) == "function"
    assert sample_jobs.RECORDED == [params]


def test_log_payload_job(caplog):
    params = JobParameters.from_mapping({"x": True}).merged_with_tenant("t1")
    with caplog.at_level("INFO"):
        assert LogPayloadJob().run(params) == {"x": True, "tenantId": "t1"}
    assert "t1" in caplog.text


def test_run_job_records_metrics():
    label = "sample_jobs:RecordingJob"
    success = metrics.JOB_SUCCESS.labels(label)
    before = success._value.get()
    run_job(label, "t1:job-v1", JobParameters())
    assert success._value.get() == before + 1


def test_run_job_failure_propagates():
    label = "sample_jobs:ExplodingJob"
    failure = metrics.JOB_FAILURE.labels(label)
    before = failure._value.get()
    with pytest.raises(RuntimeError):
        run_job(label, "t1:job-v1", JobParameters())
    assert failure._value.get() == before + 1
