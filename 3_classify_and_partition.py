## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES

####################################################################
## THIS SCRIPT CLASSIFIES NURSING HOME EPISODES AS NO, FULL OR PARTIAL ENROLLMENT AND SPLITS THE EPISODES
## NEEDING DAY-LEVEL WORK INTO PARTITIONS FOR THE DAY-LEVEL WORKERS (ONE SET PER ANCHORING POLICY)
## usage: python 3_classify_and_partition.py data_path.yaml
####################################################################

import logging
import sys

import pandas as pd

from nh_drug_episodes.classify import classify_episodes
from nh_drug_episodes.config import POLICIES, configure_logging, load_config, work_file
from nh_drug_episodes.partition import assign_partitions

configure_logging()
logger = logging.getLogger('3_classify_and_partition')

config = load_config(sys.argv[1])
enroll = pd.read_parquet(work_file(config.work_dir, 'enrollment_episodes'))

for policy in POLICIES:
    nh = pd.read_parquet(work_file(config.work_dir, 'nh_episodes', policy))
    classified = classify_episodes(nh, enroll)

    day_level = assign_partitions(classified.day_level, config.n_partitions)
    logger.info('%s: partition sizes %s', policy, day_level['partition'].value_counts().sort_index().to_dict())

    classified.episodes.to_parquet(work_file(config.work_dir, 'classified_episodes', policy), index=False)
    day_level.to_parquet(work_file(config.work_dir, 'day_level', policy), index=False)
    classified.enrollment.to_parquet(work_file(config.work_dir, 'partial_enrollment', policy), index=False)
