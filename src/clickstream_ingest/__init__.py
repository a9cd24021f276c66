"""Clickstream ingestion: Avro decode with fallback, resilient delivery, checkpoint barrier."""
