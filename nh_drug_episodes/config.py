## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE READS THE YAML FILE THAT HOLDS INPUT/OUTPUT PATHS AND STUDY PARAMETERS
## AND TURNS IT INTO EXPLICIT CONFIGURATION RECORDS FOR THE PIPELINE AND ITS WORKERS

import logging
import sys
from dataclasses import dataclass, replace
from pathlib import Path

import pandas as pd
import yaml

## qualifying monthly MBSF codes
## HMO_IND: 0 = not a member of an HMO, 4 = fee-for-service claims processed by the plan
FFS_CODES = ('0', '4')
## MDCR_ENTLMT_BUYIN_IND: 3 = Part A and Part B, C = Part A and Part B state buy-in
PARTS_AB_CODES = ('3', 'C')
## PTD_CNTRCT_ID: Part D contract numbers start with H, R, S or E
PARTD_PREFIXES = ('H', 'R', 'S', 'E')

POLICIES = ('entry', 'admission')


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class StudyConfig:
    study_start: pd.Timestamp
    study_end: pd.Timestamp
    lookback_date: pd.Timestamp
    years: tuple
    n_partitions: int
    mds_path: str
    mbsf_path: str
    medpar_path: str
    work_dir: Path
    final_dir: Path
    run_id: str = 'run'
    scheduler_address: str = None
    ffs_codes: tuple = FFS_CODES
    parts_ab_codes: tuple = PARTS_AB_CODES
    partd_prefixes: tuple = PARTD_PREFIXES


@dataclass(frozen=True)
class WorkerConfig:
    """Everything a day-level worker needs; passed to the task, never read from globals."""
    partition_index: int
    n_partitions: int
    run_id: str
    policy: str
    study_start: pd.Timestamp
    study_end: pd.Timestamp
    work_dir: Path

    @property
    def output_path(self):
        return Path(self.work_dir) / 'day_level' / 'drug_obs_{0}_{1}_{2}.parquet'.format(
            self.run_id, self.policy, self.partition_index)


def work_file(work_dir, name, policy=None):
    ## intermediate tables live under the work directory, one parquet file per table (and policy)
    stem = name if policy is None else '{0}_{1}'.format(name, policy)
    return Path(work_dir) / '{}.parquet'.format(stem)


def _require(raw, key):
    if key not in raw:
        raise ConfigError('missing required config key: {}'.format(key))
    return raw[key]


def load_config(path):
    """Read the YAML config at `path` into a StudyConfig."""
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError('cannot read config {0}: {1}'.format(path, e)) from e
    if not isinstance(raw, dict):
        raise ConfigError('config {} is not a mapping'.format(path))
    return config_from_dict(raw)


def config_from_dict(raw):
    inputs = _require(raw, 'input')
    outputs = _require(raw, 'output')
    codes = raw.get('codes') or {}

    study_start = pd.Timestamp(_require(raw, 'study_start'))
    study_end = pd.Timestamp(_require(raw, 'study_end'))
    ## the lookback date defaults to the study start
    lookback_date = pd.Timestamp(raw.get('lookback_date', study_start))
    if study_end < study_start:
        raise ConfigError('study_end {0} is before study_start {1}'.format(study_end, study_start))
    if lookback_date > study_start:
        raise ConfigError('lookback_date {0} is after study_start {1}'.format(lookback_date, study_start))

    years = tuple(raw.get('years') or range(lookback_date.year, study_end.year + 1))
    n_partitions = int(raw.get('n_partitions', 1))
    if n_partitions < 1:
        raise ConfigError('n_partitions must be at least 1')

    return StudyConfig(
        study_start=study_start,
        study_end=study_end,
        lookback_date=lookback_date,
        years=years,
        n_partitions=n_partitions,
        mds_path=_require(inputs, 'mds'),
        mbsf_path=_require(inputs, 'mbsf'),
        medpar_path=_require(inputs, 'medpar'),
        work_dir=Path(_require(outputs, 'work')),
        final_dir=Path(_require(outputs, 'final')),
        run_id=str(raw.get('run_id', 'run')),
        scheduler_address=raw.get('scheduler_address'),
        ffs_codes=tuple(str(c) for c in codes.get('ffs', FFS_CODES)),
        parts_ab_codes=tuple(str(c) for c in codes.get('parts_ab', PARTS_AB_CODES)),
        partd_prefixes=tuple(str(c) for c in codes.get('partd_prefixes', PARTD_PREFIXES)),
    )


def worker_configs(config, policy, only=None):
    """One WorkerConfig per partition; `only` restricts to the listed partition indexes (reruns)."""
    if policy not in POLICIES:
        raise ConfigError('unknown anchoring policy: {}'.format(policy))
    indexes = range(config.n_partitions) if only is None else only
    base = WorkerConfig(partition_index=0,
                        n_partitions=config.n_partitions,
                        run_id=config.run_id,
                        policy=policy,
                        study_start=config.study_start,
                        study_end=config.study_end,
                        work_dir=config.work_dir)
    return [replace(base, partition_index=i) for i in indexes]


def configure_logging(level=logging.INFO):
    logging.basicConfig(level=level,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        stream=sys.stdout)
