## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES

####################################################################
## THIS SCRIPT RUNS THE DAY-LEVEL INTERSECTION OF NURSING HOME, ENROLLMENT, HOSPITAL AND SNF DAYS FOR EVERY
## PARTITION ON THE DASK CLUSTER AND WAITS FOR ALL PARTITIONS TO FINISH
## usage: python 4_run_day_level.py data_path.yaml [partition index ...]
## pass partition indexes to rerun only the partitions that failed
####################################################################

import logging
import sys

from dask.distributed import Client

from nh_drug_episodes.config import POLICIES, configure_logging, load_config, worker_configs
from nh_drug_episodes.partition import run_partitions

configure_logging()
logger = logging.getLogger('4_run_day_level')

config = load_config(sys.argv[1])
only = [int(i) for i in sys.argv[2:]] or None
client = Client(config.scheduler_address) if config.scheduler_address else Client()

failed = []
for policy in POLICIES:
    status = run_partitions(client, worker_configs(config, policy, only=only))
    failed += [(policy, i) for i, code in status.items() if code != 0]

client.close()
if failed:
    logger.error('run %s: failed partitions %s', config.run_id, failed)
    sys.exit(1)
