"""Serving — HTTP surface for the retriever."""
