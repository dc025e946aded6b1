import httpx
import asyncio
import os
import re
import sys

BASE_URL = os.environ.get("SHORTLINK_URL", "http://localhost:8080")


async def run_verification(client: httpx.AsyncClient = None, pause: float = 3.0) -> bool:
    if client is None:
        async with httpx.AsyncClient(base_url=BASE_URL, timeout=10.0) as client:
            return await run_verification(client, pause)

    passed = True
    print(f"🚀  Starting Verification against {client.base_url}...\n")

    # 1. Health Check
    print("1. [Health] Checking /health...")
    try:
        resp = await client.get("/health")
        if resp.status_code == 200 and resp.json() == {"status": "ok"}:
            print("   ✅  Health Check Passed")
        else:
            print(f"   ❌  Health Check Failed: {resp.text}")
            return False
    except httpx.HTTPError as e:
        print(f"   ❌  Connection Error: {e}")
        return False

    # 2. Shorten
    print("\n2. [API] Shortening a URL...")
    long_url = "https://www.example.com/page"
    resp = await client.post("/shorten", json={"original_url": long_url, "custom_slug": ""})
    if resp.status_code != 200:
        print(f"   ❌  Shorten Failed: {resp.status_code} {resp.text}")
        return False
    data = resp.json()
    alias = data["short_url"].rsplit("/", 1)[-1]
    if re.fullmatch(r"[A-Za-z0-9]{6}", alias) and data["qr_code"]:
        print(f"   ✅  Created: {data['short_url']}")
    else:
        print(f"   ❌  Unexpected response: {data}")
        return False

    # The bucket holds 3 tokens and refills 1/s; pace the remaining calls.
    await asyncio.sleep(pause)

    # 3. Redirect
    print("\n3. [API] Verifying Redirect...")
    resp = await client.get(f"/{alias}", follow_redirects=False)
    if resp.status_code in (301, 302) and resp.headers.get("location") == long_url:
        print(f"   ✅  Redirect Location matches: {resp.headers['location']}")
    else:
        print(f"   ❌  Redirect Failed: {resp.status_code} {resp.headers.get('location')}")
        passed = False

    # 4. Click count
    print("\n4. [API] Verifying Click Count...")
    resp = await client.get(f"/v1/links/{alias}")
    if resp.status_code == 200 and resp.json()["click_count"] == 1:
        print("   ✅  Click Count updated: 1")
    else:
        print(f"   ❌  Metadata Failed: {resp.status_code} {resp.text}")
        passed = False

    # 5. Conflict
    print("\n5. [API] Verifying Slug Conflict...")
    resp = await client.post("/shorten", json={"original_url": long_url, "custom_slug": alias})
    if resp.status_code == 409:
        print("   ✅  Conflict detected")
    else:
        print(f"   ❌  Expected 409, got {resp.status_code}")
        passed = False

    # 6. Rate Limiting
    print("\n6. [API] Verifying Rate Limiting...")
    limit_hit = False
    for i in range(10):
        resp = await client.get("/unknown-alias")
        if resp.status_code == 429:
            limit_hit = True
            print(f"   ✅  Rate Limit Hit at request #{i+1}")
            break

    if not limit_hit:
        print("   ❌  Rate Limit NOT Hit")
        passed = False

    # 7. Metrics
    print("\n7. [Observability] Verifying Metrics...")
    resp = await client.get("/metrics")
    if resp.status_code == 200 and "http_requests_total" in resp.text:
        print("   ✅  Metrics Endpoint Exposed")
    else:
        print(f"   ❌  Metrics Failed: {resp.status_code}")
        passed = False

    print("\n✨ Verification Complete!" if passed else "\n💥 Verification Failed!")
    return passed


if __name__ == "__main__":
    sys.exit(0 if asyncio.run(run_verification()) else 1)
