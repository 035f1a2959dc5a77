from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

import numpy as np
import torch
from transformers import AutoModel, AutoTokenizer

from archgraph.embeddings.encoder import EmbeddingEncoder


class HuggingFaceEmbeddingEncoder(EmbeddingEncoder):
    """
    Sentence encoder backed by a HuggingFace transformer.

    Mask-aware mean pooling over the last hidden state, L2-normalized. The
    model is loaded on first use, so building the encoder at startup does
    not download weights.
    """

    def __init__(
        self,
        *,
        model_name: str,
        device: str = "cpu",
        dimension: int = 384,
        max_length: int = 256,
    ) -> None:
        super().__init__(dimension=dimension)
        self.model_name = model_name
        self.device = device
        self.max_length = max_length

        self._tokenizer: Optional[Any] = None
        self._model: Optional[Any] = None
        self._load_lock = threading.Lock()

    def _ensure_loaded(self) -> None:
        if self._model is not None:
            return
        with self._load_lock:
            if self._model is not None:
                return
            t0 = time.perf_counter()
            tokenizer = AutoTokenizer.from_pretrained(self.model_name)
            model = AutoModel.from_pretrained(self.model_name)
            model.to(self.device)
            model.eval()

            hidden = int(model.config.hidden_size)
            if hidden != self.dimension:
                logging.getLogger("archgraph.startup").warning(
                    "[startup] %s has hidden size %d, configured %d; using %d",
                    self.model_name,
                    hidden,
                    self.dimension,
                    hidden,
                )
                self.dimension = hidden

            self._tokenizer = tokenizer
            self._model = model
            logging.getLogger("archgraph.startup").info(
                "[startup] embedding model %s loaded in %.3fs",
                self.model_name,
                time.perf_counter() - t0,
            )

    def _encode_one(self, text: str) -> np.ndarray:
        self._ensure_loaded()

        with torch.no_grad():
            inputs = self._tokenizer(
                text,
                return_tensors="pt",
                truncation=True,
                max_length=self.max_length,
            ).to(self.device)
            hidden = self._model(**inputs).last_hidden_state

            mask = inputs["attention_mask"].unsqueeze(-1).to(hidden.dtype)
            pooled = (hidden * mask).sum(dim=1) / mask.sum(dim=1).clamp(min=1e-9)

        vec = pooled.squeeze(0).cpu().numpy().astype(np.float32)
        norm = float(np.linalg.norm(vec))
        if norm > 0:
            vec = vec / norm
        return vec
