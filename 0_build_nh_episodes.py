## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES

####################################################################
## THIS SCRIPT BUILDS ENTRY-ANCHORED AND ADMISSION-ANCHORED NURSING HOME EPISODES FROM MDS 3.0 ENTRY TRACKING
## RECORDS, DISCHARGE ASSESSMENTS AND OBRA ADMISSION ASSESSMENTS, CORRECTED BY THE MBSF DATE OF DEATH
## usage: python 0_build_nh_episodes.py data_path.yaml
####################################################################

import logging
import sys

from dask.distributed import Client

from nh_drug_episodes.config import configure_logging, load_config, work_file
from nh_drug_episodes.enrollment import death_dates, read_mbsf
from nh_drug_episodes.mds import read_mds, split_assessments
from nh_drug_episodes.nh_episodes import build_admission_episodes, build_ed_pairs, build_entry_episodes

configure_logging()
logger = logging.getLogger('0_build_nh_episodes')

config = load_config(sys.argv[1])
client = Client(config.scheduler_address) if config.scheduler_address else Client()
config.work_dir.mkdir(parents=True, exist_ok=True)

## read in MDS and split into entries, discharges and admission assessments
mds = read_mds(config.mds_path, config.years)
entries, discharges, admissions = split_assessments(mds, config.lookback_date, config.study_end)
del mds

## date of death from MBSF
mbsf = read_mbsf(config.mbsf_path, config.years)
deaths = death_dates(mbsf)
deaths.to_parquet(work_file(config.work_dir, 'deaths'), index=False)
del mbsf

pairs = build_ed_pairs(entries, discharges, admissions, config.study_end)
entry_episodes = build_entry_episodes(pairs, deaths)
admission_episodes = build_admission_episodes(entry_episodes, deaths)

## write to parquet
entry_episodes.to_parquet(work_file(config.work_dir, 'nh_episodes', 'entry'), index=False)
admission_episodes.to_parquet(work_file(config.work_dir, 'nh_episodes', 'admission'), index=False)
logger.info('wrote %d entry-anchored and %d admission-anchored episodes', len(entry_episodes), len(admission_episodes))
client.close()
