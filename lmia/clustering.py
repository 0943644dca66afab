"""
Greedy proximity clustering of employer records.

Points are visited in input order. Each unvisited point seeds a cluster and
absorbs every later unvisited point within the radius of the seed. The
result is order-dependent and not globally optimal: a point can end up in an
earlier seed's cluster even when a later seed would be closer. Distances are
planar degree distances; the radius is converted with a flat
meters-per-degree constant.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import List, Optional, Sequence

from lmia.exceptions import ClusteringTimeout
from lmia.models import Cluster, EmployerRecord


logger = logging.getLogger(__name__)

METERS_PER_DEGREE = 111000


def radius_in_degrees(radius_meters: float) -> float:
    return radius_meters / METERS_PER_DEGREE


def singleton(point: EmployerRecord) -> Cluster:
    return Cluster(lat=point.latitude, lng=point.longitude, members=(point,))


def cluster_points(
    points: Sequence[EmployerRecord],
    radius_meters: float,
    min_cluster_size: int = 2,
) -> List[Cluster]:
    """Group points into clusters; O(n^2) in ``len(points)``.

    Groups smaller than ``min_cluster_size`` are emitted as one singleton
    cluster per member, so every input point lands in exactly one output
    cluster.
    """
    threshold = radius_in_degrees(radius_meters)
    processed = [False] * len(points)
    clusters: List[Cluster] = []

    for index, seed in enumerate(points):
        if processed[index]:
            continue
        processed[index] = True
        members = [seed]
        for other in range(index + 1, len(points)):
            if processed[other]:
                continue
            candidate = points[other]
            distance = math.hypot(seed.latitude - candidate.latitude, seed.longitude - candidate.longitude)
            if distance < threshold:
                members.append(candidate)
                processed[other] = True

        if len(members) >= min_cluster_size:
            clusters.append(Cluster(lat=seed.latitude, lng=seed.longitude, members=tuple(members)))
        else:
            clusters.extend(singleton(m) for m in members)

    return clusters


def unclustered(points: Sequence[EmployerRecord]) -> List[Cluster]:
    return [singleton(p) for p in points]


def submit_clustering(
    executor: Executor,
    points: Sequence[EmployerRecord],
    radius_meters: float,
    *,
    timeout: float,
    min_cluster_size: int = 2,
) -> List[Cluster]:
    future = executor.submit(cluster_points, list(points), radius_meters, min_cluster_size)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        raise ClusteringTimeout(f"clustering {len(points)} points exceeded {timeout:.1f}s") from None


def cluster_with_deadline(
    points: Sequence[EmployerRecord],
    radius_meters: float,
    *,
    timeout: Optional[float] = None,
    min_cluster_size: int = 2,
    executor: Optional[Executor] = None,
) -> List[Cluster]:
    """Cluster on ``executor`` and wait at most ``timeout`` seconds.

    On timeout the points are returned unclustered (one singleton each, input
    order kept). Without an executor or timeout this is ``cluster_points``.
    """
    if executor is None or timeout is None:
        return cluster_points(points, radius_meters, min_cluster_size)

    try:
        return submit_clustering(executor, points, radius_meters, timeout=timeout, min_cluster_size=min_cluster_size)
    except ClusteringTimeout as exc:
        logger.warning("%s; returning unclustered points", exc)
        return unclustered(points)
