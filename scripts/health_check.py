#!/usr/bin/env python3
"""Health check script for the cloudspend proxy"""

import argparse
import sys
from typing import Any

import requests


def check_proxy(base_url: str) -> dict[str, Any]:
    """Health check for the proxy and its data API"""
    try:
        response = requests.get(f"{base_url}/health", timeout=5)
        if response.status_code != 200:
            return {"status": "unhealthy", "reason": f"Proxy returned {response.status_code}"}

        health = response.json()
        if not health.get("auth_method"):
            return {"status": "degraded", "reason": "Proxy has no GCP credentials"}

        # Costs always answer; a non-live source means GCP itself is unreachable
        data_response = requests.get(f"{base_url}/api/data/gcp/costs", timeout=10)
        if data_response.status_code != 200:
            return {"status": "unhealthy", "reason": f"Data API returned {data_response.status_code}"}

        source = data_response.json().get("source")
        if source != "live":
            return {"status": "degraded", "reason": f"GCP costs served from {source} data"}

        return {"status": "healthy", "reason": "All checks passed"}

    except requests.exceptions.RequestException as e:
        return {"status": "unhealthy", "reason": f"Request failed: {e}"}
    except ValueError as e:
        return {"status": "unhealthy", "reason": f"Invalid JSON response: {e}"}


def main():
    parser = argparse.ArgumentParser(description="Health check for the cloudspend proxy")
    parser.add_argument(
        "--url", default="http://localhost:3001", help="Base URL of the proxy (default: %(default)s)"
    )

    args = parser.parse_args()
    result = check_proxy(args.url.rstrip("/"))

    print(f"Health check result: {result}")

    if result["status"] == "healthy":
        sys.exit(0)
    elif result["status"] == "degraded":
        print(f"Service degraded: {result['reason']}")
        sys.exit(0)  # Still return OK for degraded state
    else:
        print(f"Service unhealthy: {result['reason']}")
        sys.exit(1)


if __name__ == "__main__":
    main()
