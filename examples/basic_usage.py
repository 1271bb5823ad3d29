"""examples/basic_usage.py - sentryhook integration demo.

Sends two payment failures to Sentry through a synchronous hook:
    Scenario A: an error passed explicitly via ``extra={"error": exc}``
    Scenario B: logger.exception(), where the error comes from exc_info

Set SENTRY_DSN to a real project DSN to deliver the events; otherwise a
placeholder DSN is used and the hook reports the delivery failure through
logging's handleError().

Run:
    SENTRY_DSN=https://<key>@<host>/<project> python examples/basic_usage.py
"""

import logging
import os

from sentryhook import HTTPRequest, SentryHook, StacktraceConfiguration, User

# ---------------------------------------------------------------------------
# Standard logger setup (no changes from what a developer already has)
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("app.billing")

# ---------------------------------------------------------------------------
# sentryhook integration: one handler added to the existing setup
# ---------------------------------------------------------------------------
hook = SentryHook.from_dsn(
    os.environ.get("SENTRY_DSN") or "http://public@localhost:9000/1",
    tags={"service": "billing"},
    timeout=2.0,
    stacktrace=StacktraceConfiguration(enabled=True, context=3, in_app_prefixes=("__main__", "app")),
)
hook.set_environment("demo")
hook.add_ignore("card_number")
logging.getLogger().addHandler(hook)


class InsufficientFunds(Exception):
    pass


def get_balance(user_id: int) -> int:
    """Simulate a DB balance query."""
    logger.debug(f"Querying balance from DB: user_id={user_id}")
    return 3_000


def pay(user_id: int, amount: int) -> None:
    logger.info(f"Payment attempt: user_id={user_id}, amount={amount}")
    balance = get_balance(user_id)
    if balance < amount:
        raise InsufficientFunds(f"balance={balance}, amount={amount}")
    logger.info("Payment successful")


if __name__ == "__main__":
    # Scenario A: explicit error field plus well-known fields
    try:
        pay(user_id=101, amount=5_000)
    except InsufficientFunds as exc:
        logger.error(
            "Payment failed",
            extra={
                "error": exc,
                "user": User(id="101"),
                "http_request": HTTPRequest(url="https://shop.example.com/pay", method="POST"),
                "fingerprint": ["billing", "insufficient-funds"],
                "card_number": "4111111111111111",  # never sent: ignored field
                "amount": 5_000,
            },
        )

    # Scenario B: the error comes from the active exception
    try:
        pay(user_id=202, amount=9_000)
    except InsufficientFunds:
        logger.exception("Payment failed", extra={"amount": 9_000})

    hook.close()
