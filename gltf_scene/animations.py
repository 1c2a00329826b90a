"""
animations.py
=============

Keyframe extraction from the ``animations`` array.

Each channel picks a sampler from its own animation's ``samplers`` list.
The sampler ``input`` accessor gives key times; the ``output`` accessor
gives the values for the channel's target path (VEC3 for translation and
scale, VEC4 quaternions for rotation), paired with the times by index.
CUBICSPLINE outputs store (in-tangent, value, out-tangent) per key and
only the value is kept.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Tuple

import numpy as np

from .accessors import AccessorResolver, to_tuples
from .errors import ON_ERROR_RAISE, ON_ERROR_SKIP, ResolutionError
from .jsonfields import get_dict, get_index, get_list, get_str, item_at
from .model import Animation, AnimationChannel, AnimationKey, LoadStats, merge_stats

PATH_READERS = {
    "translation": "as_vec3_array",
    "rotation": "as_vec4_array",
    "scale": "as_vec3_array",
}


def _literal_times(resolver: AccessorResolver, accessor_index: int) -> List[float]:
    # Whole buffer view reinterpreted as floats, ignoring accessor count.
    window = resolver.resolve_raw_window(accessor_index)
    usable = len(window) - len(window) % 4
    return np.frombuffer(window[:usable], dtype="<f4").astype(float).tolist()


def _decode_keys(
    resolver: AccessorResolver,
    input_accessor: int,
    output_accessor: int,
    path: Optional[str],
    interpolation: str,
    decode_outputs: bool,
) -> List[AnimationKey]:
    if not decode_outputs:
        return [AnimationKey(time=t) for t in _literal_times(resolver, input_accessor)]

    times = resolver.as_float_scalars(input_accessor).astype(float).tolist()
    keys = [AnimationKey(time=t) for t in times]

    reader = PATH_READERS.get(path or "")
    if reader is None:
        logging.debug("Channel path %r carries no TRS output; keys hold times only", path)
        return keys

    values = to_tuples(getattr(resolver, reader)(output_accessor))
    if interpolation == "CUBICSPLINE":
        values = values[1::3]
    if len(values) < len(keys):
        logging.warning(
            "Output accessor %d has %d values for %d key times", output_accessor, len(values), len(keys)
        )

    for key, value in zip(keys, values):
        setattr(key, path, value)
    return keys


def _build_channel(
    animation_index: int,
    channel_index: int,
    channel_json: Any,
    samplers: Optional[List[Any]],
    resolver: AccessorResolver,
    decode_outputs: bool,
) -> Optional[AnimationChannel]:
    """Return the channel, or None when the channel/sampler JSON is malformed."""
    channel = AnimationChannel()

    target = get_dict(channel_json, "target")
    target_node = get_index(target, "node")
    if target_node is not None:
        channel.target_node = str(target_node)
    else:
        logging.debug("Animation %d channel %d has no target node", animation_index, channel_index)
    channel.path = get_str(target, "path")

    sampler_index = get_index(channel_json, "sampler")
    if sampler_index is None:
        logging.warning("Animation %d channel %d missing sampler index", animation_index, channel_index)
        return None

    sampler = item_at(samplers, sampler_index)
    if not isinstance(sampler, dict):
        logging.warning("Animation %d channel %d: invalid sampler %d", animation_index, channel_index, sampler_index)
        return None

    input_accessor = get_index(sampler, "input")
    output_accessor = get_index(sampler, "output")
    if input_accessor is None or output_accessor is None:
        logging.warning("Animation %d sampler %d missing input/output", animation_index, sampler_index)
        return None

    channel.interpolation = get_str(sampler, "interpolation", "LINEAR") or "LINEAR"
    channel.keys = _decode_keys(
        resolver,
        input_accessor,
        output_accessor,
        channel.path,
        channel.interpolation,
        decode_outputs,
    )
    return channel


def build_animation(
    animation_index: int,
    animation_json: Any,
    resolver: AccessorResolver,
    stats: LoadStats,
    decode_outputs: bool = True,
    on_resolution_error: str = ON_ERROR_RAISE,
) -> Optional[Animation]:
    """Build one animation; None when it is not an object or has no channels array."""
    if not isinstance(animation_json, dict):
        logging.warning("Animation %d is not an object; skipped", animation_index)
        stats.record("animations", animation_index, "animation is not an object")
        return None

    channels = get_list(animation_json, "channels")
    if channels is None:
        logging.warning("Animation %d missing channels; skipped", animation_index)
        stats.record("animations", animation_index, "missing channels")
        return None

    animation = Animation(name=get_str(animation_json, "name", "") or "")
    samplers = get_list(animation_json, "samplers")

    for channel_index, channel_json in enumerate(channels):
        try:
            channel = _build_channel(
                animation_index, channel_index, channel_json, samplers, resolver, decode_outputs
            )
        except ResolutionError as exc:
            if on_resolution_error != ON_ERROR_SKIP:
                raise
            logging.warning("Animation %d channel %d skipped: %s", animation_index, channel_index, exc)
            channel = None
            stats.record("animations", animation_index, f"channel {channel_index}: {exc}")
        else:
            if channel is None:
                stats.record("animations", animation_index, f"channel {channel_index} is malformed")

        if channel is None:
            stats.channels_skipped += 1
            continue

        animation.channels.append(channel)
        stats.channels_built += 1

    return animation


def _animation_worker(
    animation_index: int,
    animation_json: Any,
    resolver: AccessorResolver,
    decode_outputs: bool,
    on_resolution_error: str,
) -> Tuple[Optional[Animation], LoadStats]:
    stats = LoadStats()
    animation = build_animation(
        animation_index, animation_json, resolver, stats, decode_outputs, on_resolution_error
    )
    return animation, stats


def build_animations(
    animations_json: List[Any],
    resolver: AccessorResolver,
    stats: LoadStats,
    decode_outputs: bool = True,
    on_resolution_error: str = ON_ERROR_RAISE,
    workers: int = 1,
) -> List[Animation]:
    total = len(animations_json)
    if workers <= 1 or total <= 1:
        results = [
            (build_animation(index, anim, resolver, stats, decode_outputs, on_resolution_error), None)
            for index, anim in enumerate(animations_json)
        ]
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(
                executor.map(
                    _animation_worker,
                    range(total),
                    animations_json,
                    [resolver] * total,
                    [decode_outputs] * total,
                    [on_resolution_error] * total,
                )
            )

    animations: List[Animation] = []
    for animation, worker_stats in results:
        if worker_stats is not None:
            merge_stats(stats, worker_stats)
        if animation is not None:
            animations.append(animation)
    return animations
