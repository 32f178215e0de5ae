"""
Echo job — hands the payload straight back.

Handy for smoke-testing a deployment: enqueue {"x": 1} and the completed job's
result is {"received": {"x": 1}}.
"""

from jobs.base import AbstractJobHandler
from models.enums import JobType


class EchoJob(AbstractJobHandler):

    async def run(self, data, job) -> dict:
        return {"received": data}

    @property
    def job_type(self) -> str:
        return JobType.ECHO.value
