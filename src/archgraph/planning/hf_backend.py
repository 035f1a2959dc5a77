from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer, TextGenerationPipeline


class HuggingFaceGenerationBackend:
    """
    Causal-LM text generation through a HuggingFace pipeline.

    Weights load on the first `generate` call.
    """

    def __init__(
        self,
        *,
        model_name: str,
        hf_token: Optional[str] = None,
        device: Optional[str] = None,
        max_new_tokens: int = 512,
        temperature: float = 0.2,
        top_p: float = 0.9,
        repetition_penalty: float = 1.1,
    ) -> None:
        if device is None:
            device = "cuda" if torch.cuda.is_available() else "cpu"

        self.model_name = model_name
        self.hf_token = hf_token
        self.device = device
        self.max_new_tokens = max_new_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.repetition_penalty = repetition_penalty

        self._pipeline: Optional[Any] = None
        self._tokenizer: Optional[Any] = None
        self._load_lock = threading.Lock()

    def _ensure_loaded(self) -> None:
        if self._pipeline is not None:
            return
        with self._load_lock:
            if self._pipeline is not None:
                return
            t0 = time.perf_counter()

            auth = {"token": self.hf_token} if self.hf_token else {}
            tokenizer = AutoTokenizer.from_pretrained(self.model_name, use_fast=True, **auth)
            if tokenizer.pad_token is None:
                tokenizer.pad_token = tokenizer.eos_token

            model = AutoModelForCausalLM.from_pretrained(
                self.model_name,
                torch_dtype=torch.float16 if self.device == "cuda" else torch.float32,
                **auth,
            )
            self._pipeline = TextGenerationPipeline(
                model=model,
                tokenizer=tokenizer,
                device=0 if self.device == "cuda" else -1,
            )
            self._tokenizer = tokenizer
            logging.getLogger("archgraph.startup").info(
                "[startup] planner model %s loaded in %.3fs",
                self.model_name,
                time.perf_counter() - t0,
            )

    def generate(self, prompt: str) -> str:
        self._ensure_loaded()
        out = self._pipeline(
            prompt,
            max_new_tokens=self.max_new_tokens,
            do_sample=self.temperature > 0,
            temperature=self.temperature,
            top_p=self.top_p,
            repetition_penalty=self.repetition_penalty,
            pad_token_id=self._tokenizer.eos_token_id,
            eos_token_id=self._tokenizer.eos_token_id,
            return_full_text=False,
        )
        return out[0]["generated_text"].strip() if out else ""
