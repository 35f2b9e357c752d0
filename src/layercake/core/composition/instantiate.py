"""Layer instantiation."""
from __future__ import annotations

import logging
from typing import Any

from layercake.core.exceptions import ConstructorArityMismatch, InstantiationFailure

from .contract import local_namespace
from .descriptors import CONSTRUCTOR, FIELD, InjectionBinding, PartialType
from .injection import init_signature, plan_call
from .passthrough import DELEGATE_ATTR

logger = logging.getLogger(__name__)


def instantiate(
    layer_cls: type,
    binding: InjectionBinding,
    descriptor: PartialType,
    delegate: Any,
) -> Any:
    """Construct one layer of ``layer_cls`` around ``delegate``.

    The delegate is recorded before ``__init__`` runs so overrides called during
    construction can already forward. Any exception raised while constructing
    is wrapped in :class:`InstantiationFailure`; the half-built object is
    dropped.
    """
    sig = init_signature(layer_cls, local_namespace(layer_cls, type(delegate)))
    if binding.kind == CONSTRUCTOR:
        param = sig.params[binding.index]
        call = plan_call(sig, descriptor, delegate_param=param, delegate=delegate)
    else:
        call = plan_call(sig, descriptor)
    if call is None:
        # Resolution already lined these up; only a mutated class gets here.
        raise ConstructorArityMismatch(
            f"{descriptor.name}: constructor no longer matches resolved binding '{binding.site}'",
            context={"layer": descriptor.name},
        )

    try:
        new = layer_cls.__new__
        if new is object.__new__:
            instance = object.__new__(layer_cls)
        else:
            instance = new(layer_cls, *call.args, **call.kwargs)
        object.__setattr__(instance, DELEGATE_ATTR, delegate)
        instance.__init__(*call.args, **call.kwargs)
        if binding.kind == FIELD:
            setattr(instance, binding.site, delegate)
    except Exception as exc:
        raise InstantiationFailure(
            f"Constructing layer {descriptor.name} failed: {exc}",
            cause=exc,
            context={"layer": descriptor.name, "binding": f"{binding.kind}:{binding.site}"},
        ) from exc

    logger.debug("Instantiated layer %s via %s '%s'", descriptor.name, binding.kind, binding.site)
    return instance


__all__ = ["instantiate"]
