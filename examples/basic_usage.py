"""
Basic sentrylite usage.

Runs in dry mode, so nothing leaves the machine: every envelope is built,
compressed and logged instead of sent.

    python examples/basic_usage.py
"""

import asyncio
import logging

import sentrylite
from sentrylite.integrations.logging import SentryHandler


@sentrylite.traced(op="db.query")
async def load_order(order_id: int) -> dict:
    await asyncio.sleep(0.01)
    return {"id": order_id, "total": 42}


async def checkout(order_id: int) -> None:
    async with sentrylite.start_transaction(name="checkout", op="http.server") as transaction:
        transaction.set_tag("order_id", order_id)
        order = await load_order(order_id)

        async with sentrylite.start_transaction(op="payment.charge"):
            if order["total"] > 40:
                raise ValueError(f"card declined for order {order_id}")


def main() -> None:
    sentrylite.init(
        "https://examplekey@o0.ingest.example.io/1",
        release="example@0.1.0",
        environment="dev",
        traces_sample_rate=1.0,
        dry_mode=True,
        debug=True,
    )
    sentrylite.set_tag("region", "local")

    logging.getLogger("example").addHandler(SentryHandler(level=logging.ERROR))

    sentrylite.capture_message("example started", "info")

    try:
        asyncio.run(checkout(7))
    except ValueError:
        logging.getLogger("example").exception("Checkout failed")

    sentrylite.shutdown(timeout=2.0)


if __name__ == "__main__":
    main()
