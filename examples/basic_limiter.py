"""
basic_limiter.py: minimal throttler example.

Admits a burst of requests for one client, shows the rejection once the
bucket is full, and prints the values a request layer would turn into
rate-limit response headers.

Usage:
    python examples/basic_limiter.py
"""

from throttler import CapacityExceededError, InMemoryStorage, LeakyBucket


def main() -> None:
    limiter = LeakyBucket(capacity=5, leak_rate=1.0, storage=InMemoryStorage())

    for attempt in range(7):
        try:
            usage = limiter.increment_usage("client-42")
            print(f"request {attempt}: admitted (usage={usage})")
        except CapacityExceededError as exc:
            print(f"request {attempt}: rejected (over by {exc.overflow})")

    status = limiter.get_status("client-42")
    print(f"limit={status.limit}")
    print(f"remaining={status.remaining}")
    print(f"reset_ms={status.reset_ms}")
    print(f"retry_after_ms={status.retry_after_ms}")


if __name__ == "__main__":
    main()
