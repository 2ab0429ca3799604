"""Demo withdrawals service.

Run with: python demo_app.py
Then try:
    curl -X POST http://localhost:8000/withdrawals \
        -H 'Content-Type: application/json' \
        -H 'Idempotency-Key: demo-1' \
        -d '{"amount": 100, "destination": "acc-42"}'
"""

import uvicorn

from idempotent_withdrawals.adapters.http import create_app
from idempotent_withdrawals.config import WithdrawalsConfig
from idempotent_withdrawals.observability.logging import configure_logging
from idempotent_withdrawals.storage.memory import MemoryIdempotencyIndex, MemoryRecordStore

config = WithdrawalsConfig.from_env()
configure_logging(level=config.log_level, json_output=config.json_logs)

app = create_app(
    records=MemoryRecordStore(),
    index=MemoryIdempotencyIndex(),
    config=config,
)


if __name__ == "__main__":
    print("=" * 60)
    print("Idempotent Withdrawals Demo Server")
    print("=" * 60)
    print("\nStarting server at http://localhost:8000")
    print(f"\n  POST {config.route_prefix}/withdrawals   (Idempotency-Key header required)")
    print(f"  GET  {config.route_prefix}/withdrawals/{{id}}")
    print("\nPress Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
