## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE SPLITS THE NURSING HOME EPISODES NEEDING DAY-LEVEL WORK INTO BENEFICIARY-DISJOINT PARTITIONS,
## RUNS THE DAY-LEVEL STEP FOR EACH PARTITION AS A SEPARATE TASK ON THE DASK CLUSTER,
## AND CONCATENATES THE PARTITION OUTPUTS INTO ONE TABLE PER ANCHORING POLICY

import logging
import math
from pathlib import Path

import numpy as np
import pandas as pd
from dask.distributed import wait

from .config import work_file
from .daylevel import adjacent_episodes, drug_observable_episodes

logger = logging.getLogger(__name__)


def assign_partitions(episodes, n_partitions):
    """Add a `partition` column splitting rows into n_partitions order-preserving chunks.

    Chunks hold ceil(rows / n_partitions) rows by running row count; every beneficiary is kept
    whole in the partition of its first row, so partitions are beneficiary-disjoint.
    """
    episodes = episodes.reset_index(drop=True)
    if len(episodes) == 0:
        return episodes.assign(partition=pd.Series(dtype='int64'))
    size = math.ceil(len(episodes) / n_partitions)
    chunk = pd.Series(np.arange(len(episodes)) // size, index=episodes.index)
    episodes['partition'] = chunk.groupby(episodes['BENE_ID']).transform('min').astype('int64')
    return episodes


def partition_inputs(work_dir, policy, index):
    """Read one partition's NH episodes and the enrollment, hospital and SNF rows of its beneficiaries."""
    nh = pd.read_parquet(work_file(work_dir, 'day_level', policy))
    nh = nh[nh['partition'] == index]
    benes = nh['BENE_ID'].unique()
    enrollment = pd.read_parquet(work_file(work_dir, 'partial_enrollment', policy))
    hospital = pd.read_parquet(work_file(work_dir, 'hospital_stays'))
    snf = pd.read_parquet(work_file(work_dir, 'snf_stays'))
    return (nh,
            enrollment[enrollment['BENE_ID'].isin(benes)],
            hospital[hospital['BENE_ID'].isin(benes)],
            snf[snf['BENE_ID'].isin(benes)])


def run_partition(worker):
    """Day-level task for one partition; returns 0 on success and 1 on failure."""
    try:
        nh, enrollment, hospital, snf = partition_inputs(worker.work_dir, worker.policy, worker.partition_index)
        episodes = drug_observable_episodes(nh, enrollment, hospital, snf, study_end=worker.study_end)
        adjacent = adjacent_episodes(episodes)
        if len(adjacent):
            logger.warning('run %s %s partition %d: %d adjacent drug-observable episodes',
                           worker.run_id, worker.policy, worker.partition_index, len(adjacent))
        worker.output_path.parent.mkdir(parents=True, exist_ok=True)
        episodes.to_parquet(worker.output_path, index=False)
    except Exception:
        logger.exception('run %s %s partition %d of %d failed',
                         worker.run_id, worker.policy, worker.partition_index, worker.n_partitions)
        return 1
    logger.info('run %s %s partition %d of %d wrote %d episodes to %s', worker.run_id, worker.policy,
                worker.partition_index, worker.n_partitions, len(episodes), worker.output_path)
    return 0


def run_partitions(client, workers):
    """Submit one task per worker config, wait for all of them and return {partition index: status}."""
    futures = [client.submit(run_partition, w, pure=False,
                             key='day-level-{0}-{1}-{2}'.format(w.run_id, w.policy, w.partition_index))
               for w in workers]
    wait(futures)

    status = {}
    for w, future in zip(workers, futures):
        if future.status == 'finished':
            status[w.partition_index] = future.result()
        else:
            logger.error('run %s %s partition %d: task %s (%s)', w.run_id, w.policy, w.partition_index,
                         future.status, future.exception())
            status[w.partition_index] = 1
        if status[w.partition_index] != 0:
            logger.error('run %s %s partition %d of %d returned status %d; rerun this partition',
                         w.run_id, w.policy, w.partition_index, w.n_partitions, status[w.partition_index])
    return status


def collect_partitions(workers):
    """Concatenate the outputs of the given workers into one sorted table; missing outputs are skipped."""
    frames = []
    for w in workers:
        path = Path(w.output_path)
        if not path.exists():
            logger.warning('run %s %s partition %d has no output at %s', w.run_id, w.policy, w.partition_index, path)
            continue
        frames.append(pd.read_parquet(path))
    if not frames:
        return pd.DataFrame()
    episodes = pd.concat(frames, ignore_index=True)
    return episodes.sort_values(['BENE_ID', 'nh_episode_id', 'obs_start']).reset_index(drop=True)
