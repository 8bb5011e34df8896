"""Etiquetador: product label designer and batch sheet exporter."""
