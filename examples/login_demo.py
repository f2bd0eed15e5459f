"""
login_demo.py — Minimal opgraph example.

A slow "login" operation gates two dependents. The username update has a
higher priority, so it runs before the greeting is rendered.

Usage:
    python examples/login_demo.py
"""

import logging
import threading
import time

from opgraph.scheduler import Operation, OperationScheduler


class NetworkLogin(Operation):
    def __init__(self) -> None:
        super().__init__("NETWORK_LOGIN")

    def on_ready(self, statuses):
        # Simulate a slow network off the dispatch thread.
        def _login() -> None:
            time.sleep(2)
            self.done(True)

        threading.Thread(target=_login, daemon=True).start()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    state = {"user": "Joshua", "greeting": ""}

    def update_username() -> None:
        state["user"] = "Sophia"

    def update_ui() -> None:
        state["greeting"] = f"Welcome back, {state['user']}!"

    with OperationScheduler() as scheduler:
        scheduler.add(NetworkLogin())
        scheduler.register_callback("UPDATE_UI", ["NETWORK_LOGIN"], update_ui)
        scheduler.register_callback(
            "UPDATE_USERNAME", ["NETWORK_LOGIN"], update_username, priority=10
        )
        scheduler.wait(["UPDATE_UI", "UPDATE_USERNAME"], timeout=10)

    print(state["greeting"])


if __name__ == "__main__":
    main()
