"""
Polling caller — creates a scoring job and drives it to done.

This is exactly what a UI does with a "Run" button on a timer: POST /batch/run,
look at the counts, repeat until the job reports done.

Usage:
    python -m scripts.drain_job --scope team --ref-id team_sales --caller-id owner_1
    python -m scripts.drain_job --job-id <uuid> --caller-id owner_1 --take 10

Prerequisites:
    the API is running and OPENAI_API_KEY is set on its side
"""

import argparse
import time

import httpx


def drain(client: httpx.Client, job_id: str, take: int, interval: float) -> dict:
    while True:
        resp = client.post("/batch/run", json={"job_id": job_id, "take": take})
        resp.raise_for_status()
        data = resp.json()
        total = data["queued"] + data["running"] + data["done"] + data["failed"] + data["cancelled"]
        print(
            f"  [{data['status']}] processed={data['processed']} "
            f"done={data['done']} failed={data['failed']} queued={data['queued']} / {total}"
        )
        if data["status"] == "done":
            return data
        time.sleep(interval)


def main():
    parser = argparse.ArgumentParser(description="Create and drain a batch scoring job")
    parser.add_argument("--base-url", type=str, default="http://localhost:8000")
    parser.add_argument("--caller-id", type=str, required=True, help="Sent as X-Caller-Id")
    parser.add_argument("--job-id", type=str, default=None, help="Drain an existing job instead of creating one")
    parser.add_argument("--scope", type=str, default="team", choices=["team", "org"])
    parser.add_argument("--ref-id", type=str, default=None)
    parser.add_argument("--window-size", type=int, default=30)
    parser.add_argument("--take", type=int, default=3)
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between run calls")
    args = parser.parse_args()

    client = httpx.Client(
        base_url=args.base_url,
        headers={"X-Caller-Id": args.caller_id},
        timeout=600.0,  # one run can take take × (window read + 2 AI calls)
    )

    job_id = args.job_id
    if job_id is None:
        if not args.ref_id:
            parser.error("--ref-id is required when creating a job")
        resp = client.post("/batch/jobs", json={
            "scope": args.scope,
            "ref_id": args.ref_id,
            "window_size": args.window_size,
        })
        resp.raise_for_status()
        created = resp.json()
        job_id = created["job_id"]
        print(f"Created job {job_id} with {created['total']} tasks\n")

    drain(client, job_id, args.take, args.interval)

    status = client.get("/batch/status", params={"job_id": job_id}).json()
    print(f"\nJob {job_id}: {status['job']['percent']}% done, error={status['job']['error']}")
    for failed in status["last_failed"]:
        print(f"  agent {failed['agent_id']}: {failed['error']}")


if __name__ == "__main__":
    main()
