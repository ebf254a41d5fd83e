"""
Transformer App - Record Decoding

Responsibilities:
- Decode raw record payloads against the CodeSource schema
- Run as competing consumers of the record channel
- Fail the run on the first undecodable record (no DLQ, no skipping)
"""
