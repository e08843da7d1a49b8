"""Job targets referenced by the test stores as ``sample_jobs:<name>``."""

from tenant_cadence.plugins import BaseJob

RECORDED = []


class RecordingJob(BaseJob):
    name = "recording"

    def run(self, params):
        RECORDED.append(params)
        return params.to_python()


def record_payload(params):
    RECORDED.append(params)
    return "function"


class ExplodingJob(BaseJob):
    name = "exploding"

    def run(self, params):
        raise RuntimeError("boom")


class NotAJob:
    pass


NOT_CALLABLE = 42
