"""
casserve Basic Example - Publish a document and advance a ref
==============================================================

Uploads a new version of a document, then moves the ``head`` ref to it
with compare-and-swap, retrying if another writer got there first.

Usage:
    casserve serve --config examples/basic/casserve.yaml
    python examples/basic/publish.py "new document text"
"""

import sys

from casserve.client import StoreClient
from casserve.errors import AlreadyExists, Mismatch, NotFound


def publish(client: StoreClient, ref: str, data: bytes, max_attempts: int = 5) -> str:
    key = client.put_content(data)
    print(f"[publish] uploaded {len(data)} bytes as {key}")

    for attempt in range(1, max_attempts + 1):
        try:
            current = client.get_ref(ref).decode()
        except NotFound:
            try:
                client.create_ref(ref, key)
                print(f"[publish] created {ref} -> {key}")
                return key
            except AlreadyExists:
                continue

        try:
            client.swap_ref(ref, current, key)
            print(f"[publish] {ref}: {current} -> {key} (attempt {attempt})")
            return key
        except Mismatch as e:
            print(f"[publish] {ref} moved to {e.actual.decode()}, retrying")

    raise RuntimeError(f"could not advance {ref} after {max_attempts} attempts")


def main():
    text = sys.argv[1] if len(sys.argv) > 1 else "hello from casserve"
    with StoreClient("http://localhost:8080") as client:
        key = publish(client, "head", text.encode("utf-8"))
        print(client.get_content(key).decode("utf-8"))


if __name__ == "__main__":
    main()
