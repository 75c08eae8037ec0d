"""
Manual smoke test against a running Health Advisory API.

    uvicorn main:app --port 8000
    python smoke_test.py [base_url]
"""
import json
import sys

import requests

BASE_URL = "http://localhost:8000"


def check_health(base_url: str = BASE_URL):
    response = requests.get(f"{base_url}/api/ai/health", timeout=60)

    print(f"\n{'='*60}")
    print(f"Health: HTTP {response.status_code}")
    print(f"{'='*60}")
    print(json.dumps(response.json(), indent=2, ensure_ascii=False))
    return response


def send_query(query: str, base_url: str = BASE_URL, **context):
    """POST one advisory query and print the outcome"""

    response = requests.post(
        f"{base_url}/api/ai",
        json={"query": query, **context},
        timeout=60,
    )

    print(f"\n{'='*60}")
    print(f"Query: {query}")
    print(f"{'='*60}")

    data = response.json()
    if response.status_code == 200:
        print(f"✓ Risk level: {data['riskLevel']} (emergency: {data['isEmergency']})")
        print(f"✓ Answer: {data['answer']}")
        print(json.dumps(data['recommendations'], indent=2, ensure_ascii=False))
    elif "fallbackResponse" in data:
        print(f"✗ Error {response.status_code} (rate limited: {data['isRateLimit']}): {data['details']}")
        print(f"  Fallback: {data['fallbackResponse']['answer']}")
    else:
        print(f"✗ Error {response.status_code}: {response.text}")

    return response


if __name__ == "__main__":
    base_url = sys.argv[1] if len(sys.argv) > 1 else BASE_URL
    print(f"Smoke testing {base_url} ...")

    check_health(base_url)

    # Low risk, should pass through unchanged
    send_query(
        "I have mild ankle pain after running",
        base_url,
        symptoms=[{"type": "ankle pain", "severity": "mild", "duration": "2 days"}],
    )

    # Must come back as an emergency
    send_query("I have chest pain and can't breathe", base_url)

    # With profile and metrics
    send_query(
        "Is my blood pressure something to worry about?",
        base_url,
        profile={"age": 58, "sex": "male", "conditions": ["hypertension"]},
        metrics={"bloodPressureSystolic": 148, "bloodPressureDiastolic": 94},
    )

    # Rejected before reaching the model
    send_query("", base_url)
