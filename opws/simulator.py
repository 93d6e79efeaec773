"""
Field device simulator.

Sends one synthetic uplink every N seconds to the ingestion endpoint, the
way a LoRaWAN node forwarded by The Things Network would.

Usage:
    python -m opws.simulator                      # default device, every 5 min
    python -m opws.simulator ABC123               # custom device identifier
    python -m opws.simulator ABC123 10            # every 10 seconds
"""

import argparse
import sys
import time
from datetime import datetime, timezone
from typing import Optional

import numpy as np
import requests

from opws.config import settings
from opws.logger import get_logger
from opws.services import generator as model
from opws.utils import format_timestamp

logger = get_logger(__name__)

DEFAULT_DEVICE = "SIMULATOR-001"
RAIN_CHANCE = 0.1


class DeviceSimulator:
    """Builds plausible env.v1 uplinks and POSTs them to the gateway."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        device_identifier: str = DEFAULT_DEVICE,
        interval_seconds: Optional[int] = None,
        seed: Optional[int] = None,
        http: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.device_identifier = device_identifier
        self.api_url = api_url or settings.SIMULATOR_API_URL
        self.interval_seconds = interval_seconds or settings.SIMULATOR_INTERVAL_SECONDS
        self.rng = np.random.default_rng(seed)
        self.http = http or requests.Session()
        self.timeout = timeout
        self.soil_moisture = model.SOIL_MOISTURE_INITIAL
        self.sent = 0
        self.failed = 0

    def build_uplink(self, now: Optional[datetime] = None) -> dict:
        """One reading for ``now`` (UTC), advancing the soil moisture state."""
        now = now or datetime.now(timezone.utc)
        hour = now.hour + now.minute / 60.0
        raining = bool(self.rng.random() < RAIN_CHANCE)
        intensity = float(self.rng.uniform(*model.RAIN_INTENSITY_MM_PER_HOUR)) if raining else 0.0

        step_minutes = max(1, round(self.interval_seconds / 60))
        temperature = model.air_temperature(hour, raining, self.rng)
        rain_mm = model.rainfall(intensity, step_minutes, self.rng)
        self.soil_moisture = model.soil_moisture_step(self.soil_moisture, rain_mm, hour, step_minutes)

        return {
            "dev_eui": self.device_identifier,
            "timestamp": format_timestamp(now),
            "payload": {
                "temperature": round(float(temperature), 2),
                "humidity": round(float(model.air_humidity(hour, temperature, raining, self.rng)), 2),
                "rainfall": round(float(rain_mm), 2),
                "soil_moisture": round(float(self.soil_moisture), 2),
                "luminosity": round(float(model.luminosity(hour, raining, self.rng))),
            },
        }

    def send(self, uplink: dict) -> Optional[dict]:
        """POST one uplink. Network and HTTP errors are logged, not raised."""
        try:
            response = self.http.post(self.api_url, json=uplink, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.failed += 1
            logger.error(f"Uplink from {self.device_identifier} failed: {e}")
            return None

        self.sent += 1
        body = response.json()
        logger.info(
            f"Uplink #{self.sent} accepted: {body.get('inserted')} readings "
            f"for {body.get('station')} at {uplink['timestamp']}"
        )
        return body

    def run(self, count: Optional[int] = None) -> None:
        """Send ``count`` uplinks (forever when None), sleeping between them."""
        logger.info(
            f"Simulating device {self.device_identifier} -> {self.api_url} "
            f"every {self.interval_seconds}s"
        )
        iteration = 0
        while count is None or iteration < count:
            self.send(self.build_uplink())
            iteration += 1
            if count is None or iteration < count:
                time.sleep(self.interval_seconds)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Simulate a field device sending uplinks")
    parser.add_argument("device", nargs="?", default=DEFAULT_DEVICE, help="Device identifier")
    parser.add_argument("interval", nargs="?", type=int, default=settings.SIMULATOR_INTERVAL_SECONDS,
                        help="Seconds between uplinks")
    parser.add_argument("--url", default=settings.SIMULATOR_API_URL, help="Uplink endpoint")
    parser.add_argument("--count", type=int, default=None, help="Stop after N uplinks")
    args = parser.parse_args(argv)

    simulator = DeviceSimulator(args.url, args.device, interval_seconds=args.interval)
    try:
        simulator.run(count=args.count)
    except KeyboardInterrupt:
        logger.info(f"Stopped: {simulator.sent} sent, {simulator.failed} failed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
