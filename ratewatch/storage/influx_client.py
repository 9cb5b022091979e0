# ratewatch/storage/influx_client.py
# Client for pushing rate-limit violations to an InfluxDB time-series database.
from typing import Optional

from influxdb_client import InfluxDBClient, Point, WriteOptions
from loguru import logger

from ratewatch.analysis.rate_limiter import Verdict

MEASUREMENT = "rate_limit_exceeded"


class InfluxStorage:
    def __init__(self, url: str, token: str, org: str, bucket: str, client: Optional[InfluxDBClient] = None):
        """
        Batched writer for Exceeded verdicts.

        Points are buffered up to 1000 and flushed at least every 10 seconds.
        """
        self.client = client or InfluxDBClient(url=url, token=token, org=org)
        self.bucket = bucket
        self.write_api = self.client.write_api(write_options=WriteOptions(batch_size=1000, flush_interval=10000))

    @classmethod
    def from_settings(cls, settings) -> Optional["InfluxStorage"]:
        if not settings.enabled:
            return None
        return cls(url=settings.url, token=settings.token, org=settings.org, bucket=settings.bucket)

    def write_violation(self, verdict: Verdict, interface: str, threshold: int):
        p = (Point(MEASUREMENT)
             .tag("source", verdict.source)
             .tag("interface", interface)
             .field("count", verdict.count)
             .field("threshold", threshold))
        try:
            self.write_api.write(bucket=self.bucket, record=p)
        except Exception:
            # export must never stop the capture loop
            logger.exception("Failed to write violation for {} to InfluxDB", verdict.source)
            return
        logger.debug("Wrote point to Influx: {} {} {}", MEASUREMENT, verdict.source, verdict.count)

    def close(self):
        try:
            self.write_api.close()
        finally:
            self.client.close()
