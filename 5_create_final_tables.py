## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES

####################################################################
## THIS SCRIPT CONCATENATES THE DAY-LEVEL OUTPUTS OF ALL PARTITIONS AND WRITES THE FINAL NURSING HOME EPISODE
## AND DRUG-OBSERVABLE EPISODE TABLES FOR EACH ANCHORING POLICY
## usage: python 5_create_final_tables.py data_path.yaml
####################################################################

import logging
import sys

import pandas as pd

from nh_drug_episodes.config import POLICIES, configure_logging, load_config, work_file, worker_configs
from nh_drug_episodes.final import publish_drug_observable, publish_nh_episodes
from nh_drug_episodes.partition import collect_partitions

configure_logging()
logger = logging.getLogger('5_create_final_tables')

config = load_config(sys.argv[1])
config.final_dir.mkdir(parents=True, exist_ok=True)

for policy in POLICIES:
    episodes = pd.read_parquet(work_file(config.work_dir, 'classified_episodes', policy))
    drug_obs = collect_partitions(worker_configs(config, policy))

    nh_final = publish_nh_episodes(episodes)
    drug_obs_final = publish_drug_observable(drug_obs)
    logger.info('%s: %d NH episodes, %d drug-observable episodes', policy, len(nh_final), len(drug_obs_final))

    ## write to csv
    nh_final.to_csv(config.final_dir / 'nh_episodes_{}.csv'.format(policy), index=False)
    drug_obs_final.to_csv(config.final_dir / 'drug_observable_episodes_{}.csv'.format(policy), index=False)
