"""Leitor de preços pela câmera: captura, recorte, OCR e extração de preço."""

__version__ = "0.1.0"
