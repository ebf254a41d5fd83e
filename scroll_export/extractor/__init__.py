"""
Extractor App - Concurrent Scroll Export

Responsibilities:
- Count records matching the extraction filter (progress sizing)
- Walk the Elasticsearch scroll with a single producer
- Fan raw records out to a fixed pool of decode workers
- Cancel the whole run on the first failure, persist nothing in that case
- Publish a Redis completion event after a successful export

Output:
- data.json: JSON array of {"id", "code"} objects
- Redis event: channel=files.exports, payload={type, path, records, ts}
"""
