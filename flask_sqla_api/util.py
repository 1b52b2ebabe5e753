#
import asyncio
import inspect
from typing import Any, Dict


def dict_merge(dct: Dict, merge_dct: Dict) -> None:
    """Recursive dict merge used for creating the swagger spec.
    Inspired by :meth:``dict.update()``, instead of updating only
    top-level keys, dict_merge recurses down into dicts nested
    to an arbitrary depth, updating keys. The ``merge_dct`` is merged into ``dct``.
    :param dct: dict onto which the merge is executed
    :param merge_dct: dct merged into dct
    :return: None
    """
    for k in merge_dct:
        if k in dct and isinstance(dct[k], dict) and isinstance(merge_dct[k], dict):
            dict_merge(dct[k], merge_dct[k])
        else:
            # convert to string, for ex. http return codes
            dct[str(k)] = merge_dct[k]


async def _await(awaitable):
    return await awaitable


def run_sync(value: Any) -> Any:
    """
    Resolve `value` when it is awaitable, the wsgi request threads have no running event loop
    :param value: any value, possibly an awaitable
    :return: the (awaited) value
    """
    if inspect.isawaitable(value):
        return asyncio.run(_await(value))
    return value
