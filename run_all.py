# run_all.py
# Runs the FastAPI HRV service + (optionally) the Kafka heart-rate producer in one command

import os
import signal
import socket
import subprocess
import sys
import time
from pathlib import Path
from typing import List, Tuple

from ppg_hrv.config.settings import settings

ROOT = Path(__file__).resolve().parent
PY = sys.executable

KAFKA_BOOTSTRAP = settings.kafka.bootstrap_servers


def _popen(cmd: List[str], name: str) -> subprocess.Popen:
    print(f"[run_all] starting {name}: {' '.join(cmd)}")
    return subprocess.Popen(
        cmd,
        cwd=str(ROOT),
        env=os.environ.copy(),
    )


def _parse_host_port(bootstrap: str) -> Tuple[str, int]:
    """
    Extract host and port from a bootstrap string.

    Examples:
        "localhost:9092"         -> ("localhost", 9092)
        "kafka"                  -> ("kafka", 9092)
        "host1:9092,host2:9093"  -> first entry ("host1", 9092)
    """
    first = bootstrap.split(",")[0].strip()
    if ":" in first:
        host_str, port_str = first.split(":", 1)
        host = host_str.strip() or "localhost"
        try:
            port = int(port_str)
        except ValueError:
            port = 9092
    else:
        host = first or "localhost"
        port = 9092

    return host, port


def _wait_for_kafka(
    host: str,
    port: int,
    timeout_s: float = 30.0,
    interval_s: float = 1.0,
) -> bool:
    """Wait until the Kafka port is reachable (simple TCP check)."""
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        try:
            with socket.create_connection((host, port), timeout=2.0):
                print(f"[run_all] Kafka is reachable at {host}:{port}")
                return True
        except OSError:
            print(f"[run_all] waiting for Kafka at {host}:{port} ...")
            time.sleep(interval_s)

    print(f"[run_all] Kafka not reachable after {timeout_s:.0f}s, continuing anyway...")
    return False


def main() -> None:
    # The producer only matters when live samples come from Kafka
    default_producer = "1" if settings.device.mode == "kafka-stream" else "0"
    start_producer = os.environ.get("START_PRODUCER", default_producer) == "1"

    procs: List[Tuple[str, subprocess.Popen]] = []

    api_cmd = [
        PY,
        "-m",
        "uvicorn",
        "ppg_hrv.api.fastapi_app:app",
        "--host",
        settings.api.host,
        "--port",
        str(settings.api.port),
    ]
    producer_cmd = [PY, "-m", "ppg_hrv.tools.rr_producer"]

    try:
        api_proc = _popen(api_cmd, "api")
        procs.append(("api", api_proc))

        if start_producer:
            kafka_host, kafka_port = _parse_host_port(KAFKA_BOOTSTRAP)
            _wait_for_kafka(host=kafka_host, port=kafka_port, timeout_s=30.0)
            producer_proc = _popen(producer_cmd, "producer")
            procs.append(("producer", producer_proc))

        print("\n[run_all] running. stop with CTRL+C\n")

        # Supervisor loop
        while True:
            time.sleep(0.5)

            for idx, (name, proc) in enumerate(list(procs)):
                ret = proc.poll()
                if ret is None:
                    continue

                if name == "api":
                    print(f"[run_all] api exited (code={ret}). Shutting down...")
                    raise RuntimeError(f"api exited unexpectedly (code={ret})")

                if name == "producer":
                    print(f"[run_all] producer exited (code={ret}). Restarting in 2s...")
                    time.sleep(2.0)
                    try:
                        procs[idx] = ("producer", _popen(producer_cmd, "producer"))
                    except OSError as e:
                        print(f"[run_all] failed to restart producer: {e}")
                        procs.pop(idx)

    except KeyboardInterrupt:
        print("\n[run_all] CTRL+C received, shutting down...")

    finally:
        for name, p in procs[::-1]:
            if p.poll() is None:
                print(f"[run_all] sending SIGINT to {name} (pid={p.pid})")
                p.send_signal(signal.SIGINT)

        time.sleep(1.0)

        for name, p in procs[::-1]:
            if p.poll() is None:
                print(f"[run_all] terminating {name} (pid={p.pid})")
                p.terminate()

        print("[run_all] done.")


if __name__ == "__main__":
    main()
