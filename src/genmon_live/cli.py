from __future__ import annotations

import argparse
import asyncio
import signal
from datetime import date

import structlog

from genmon_live.config import LiveSettings, load_settings
from genmon_live.connection import ConnectionManager
from genmon_live.core.exceptions import QueryError
from genmon_live.history import HistoryClient, to_chart_series
from genmon_live.logging_config import configure_logging
from genmon_live.views import DeviceDashboard, HistoryView

logger = structlog.get_logger(__name__)


async def watch(cfg: LiveSettings, device_id: str, stop: asyncio.Event, period_s: float = 1.0) -> None:
    async with ConnectionManager(cfg.stream) as manager:
        async with DeviceDashboard(device_id, manager, settings=cfg) as view:
            while not stop.is_set():
                try:
                    await asyncio.wait_for(stop.wait(), timeout=period_s)
                except asyncio.TimeoutError:
                    pass
                gauge = view.rpm_gauge()
                logger.info(
                    "dashboard_tick",
                    device_id=device_id,
                    status=view.status.value,
                    samples=len(view.samples),
                    rpm=gauge.label() if gauge else None,
                    band=gauge.color_band.value if gauge else None,
                    total_active_power=view.metrics.total_active_power,
                    alarms=view.alarms.label,
                )


async def rpm_day(cfg: LiveSettings, device_id: str, day: date) -> int:
    async with HistoryClient(str(cfg.api.base_url), timeout_s=cfg.api.timeout_s) as client:
        view = HistoryView(client, device_id, interval=cfg.charts.resample_interval)
        result = await view.load_rpm_day(day)
    if view.error is not None:
        logger.error("rpm_day_failed", device_id=device_id, day=day.isoformat(), error=view.error)
        return 1
    if not result.has_enough_data:
        print(result.message)
        return 0
    for epoch_ms, value in to_chart_series(result.points):
        print(f"{epoch_ms}\t{value:g}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="genmon-live")
    parser.add_argument("--config", help="Path to YAML config")
    sub = parser.add_subparsers(dest="command", required=True)

    p_watch = sub.add_parser("watch", help="Follow the live stream of one device")
    p_watch.add_argument("device_id")

    p_rpm = sub.add_parser("rpm-day", help="Print the resampled RPM series for one day")
    p_rpm.add_argument("device_id")
    p_rpm.add_argument("day", type=date.fromisoformat, help="YYYY-MM-DD")

    args = parser.parse_args(argv)
    cfg = load_settings(args.config)
    configure_logging(cfg.log_level, json_output=cfg.log_json or cfg.env != "development")

    if args.command == "rpm-day":
        try:
            return asyncio.run(rpm_day(cfg, args.device_id, args.day))
        except QueryError as exc:
            logger.error("rpm_day_failed", error=exc.message)
            return 1

    async def _main() -> None:
        stop = asyncio.Event()

        def _handle_stop(*_args) -> None:  # noqa: ANN001
            stop.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _handle_stop)
            except NotImplementedError:
                pass

        await watch(cfg, args.device_id, stop)

    asyncio.run(_main())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
