"""
Seed script: submits a variety of sample jobs for demo purposes.

Usage:
    python -m scripts.seed_jobs

This creates:
- 1 echo job (completes immediately)
- 3 sleep jobs in different priority tiers
- 1 delayed sleep job (waits 10s before it becomes eligible)
- 1 guaranteed-failure job (demos retry backoff + dead-letter store)

Run this against a running API (`uvicorn api.main:app`).
"""

import httpx

BASE_URL = "http://localhost:8000"


def seed():
    client = httpx.Client(base_url=BASE_URL, timeout=10.0)

    jobs = [
        {"type": "echo", "priority": 2, "data": {"message": "hello"}},
        {"type": "sleep", "priority": 1, "data": {"duration": 2.0}},
        {"type": "sleep", "priority": 5, "data": {"duration": 5.0}},
        {"type": "sleep", "priority": 9, "data": {"duration": 8.0}},
        {"type": "sleep", "priority": 5, "delay": 10_000, "data": {"duration": 1.0}},
        {
            "type": "sleep",
            "priority": 5,
            "retries": 2,
            "data": {"duration": 0.1, "fail_probability": 1.0},
        },
    ]

    print(f"Submitting {len(jobs)} jobs to {BASE_URL}...\n")

    for job in jobs:
        resp = client.post("/jobs/", json=job)
        resp.raise_for_status()
        data = resp.json()
        print(f"  [{data['status']}] {data['type']} -> {data['tier']} tier (id: {data['id']})")

    print("\nDone! Jobs are now flowing through the queue.")
    print("Metrics:       curl http://localhost:8000/queue/metrics")
    print("Dead letters:  curl http://localhost:8000/queue/dead-letter")
    print("Sleep jobs:    curl 'http://localhost:8000/jobs/?job_type=sleep'")


if __name__ == "__main__":
    seed()
