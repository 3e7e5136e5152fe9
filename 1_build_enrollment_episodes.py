## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES

####################################################################
## THIS SCRIPT USES THE MBSF A/B/D SUMMARY TO BUILD CONTINUOUS ENROLLMENT EPISODES IN FEE-FOR-SERVICE MEDICARE
## WITH PARTS A, B AND D COVERAGE
## usage: python 1_build_enrollment_episodes.py data_path.yaml
####################################################################

import logging
import sys

from dask.distributed import Client

from nh_drug_episodes.config import configure_logging, load_config, work_file
from nh_drug_episodes.enrollment import build_enrollment_episodes, monthly_enrollment, read_mbsf

configure_logging()
logger = logging.getLogger('1_build_enrollment_episodes')

config = load_config(sys.argv[1])
client = Client(config.scheduler_address) if config.scheduler_address else Client()
config.work_dir.mkdir(parents=True, exist_ok=True)

mbsf = read_mbsf(config.mbsf_path, config.years)
## one row per beneficiary-month with FFS, Parts A&B and Part D indicators
monthly = monthly_enrollment(mbsf,
                             ffs_codes=config.ffs_codes,
                             parts_ab_codes=config.parts_ab_codes,
                             partd_prefixes=config.partd_prefixes)
logger.info('%.1f%% of beneficiary-months are enrolled in Parts A, B and D FFS', 100 * monthly['enrolled'].mean())

enroll = build_enrollment_episodes(monthly)
enroll.to_parquet(work_file(config.work_dir, 'enrollment_episodes'), index=False)
client.close()
