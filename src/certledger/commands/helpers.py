# certledger/commands/helpers.py

from __future__ import annotations

import argparse
from typing import Type, TypeVar
from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)

def prune_opts(model: Type[M], ns: argparse.Namespace) -> M:
    """
    Prune an argparse namespace down to fields the Pydantic model knows about,
    then validate. Unknown args (command, handler, etc.) are ignored.
    """
    data = vars(ns)
    allowed = model.model_fields.keys()
    pruned = {k: data[k] for k in allowed if k in data}

    return model.model_validate(pruned)
