"""
fusebatch: Batched, retrying telemetry delivery to the Langfuse ingestion API.

Traces, spans, generations and scores are accepted from any thread without
waiting on the network, grouped into batches, and delivered by a pool of
background workers.
"""

__version__ = "0.1.0"
