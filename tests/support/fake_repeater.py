"""
Stand-in for the statsd repeater used by the test suite.

Honours the same contract as the real thing: takes the config payload
path as its only argument, prints "server is listening" once bound and
forwards every datagram to each configured target. FAKE_REPEATER_MODE
picks a misbehaviour:

- normal:   forward until terminated
- silent:   bind but never report ready
- crash:    report ready, then exit with code 3
- fail:     exit with code 2 before binding
- stubborn: like normal, but ignore SIGTERM
- noisy:    write one very long stderr line, report ready, then exit with code 3
"""
import json
import os
import signal
import socket
import sys
import time

REQUIRED_KEYS = ("repeater", "repeaterProtocol", "server", "port", "backends")


def main(config_path: str) -> int:
    with open(config_path) as f:
        config = json.load(f)
    mode = os.environ.get("FAKE_REPEATER_MODE", "normal")

    missing = [key for key in REQUIRED_KEYS if key not in config]
    if missing:
        sys.stderr.write(f"config is missing {missing}\n")
        return 4

    sys.stderr.write("fake repeater booting\n")
    sys.stderr.flush()
    if mode == "fail":
        sys.stderr.write("cannot bind\n")
        return 2
    if mode == "stubborn":
        signal.signal(signal.SIGTERM, signal.SIG_IGN)

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", config["port"]))
    targets = [(target["host"], target["port"]) for target in config["repeater"]]

    if mode == "silent":
        time.sleep(60)
        return 0

    print(f"server is listening on {config['port']}", flush=True)
    if mode == "noisy":
        sys.stderr.write("x" * 200000 + "\n")
        sys.stderr.flush()
    if mode in ("crash", "noisy"):
        time.sleep(0.3)
        return 3

    while True:
        data, _ = sock.recvfrom(65535)
        for target in targets:
            sock.sendto(data, target)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1]))
