## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES

####################################################################
## THIS SCRIPT IDENTIFIES HOSPITAL AND SNF STAYS FROM MEDPAR; DRUG FILLS DURING THESE STAYS ARE NOT
## OBSERVABLE IN PART D CLAIMS
## usage: python 2_build_hospital_snf_stays.py data_path.yaml
####################################################################

import sys

from dask.distributed import Client

from nh_drug_episodes.config import configure_logging, load_config, work_file
from nh_drug_episodes.medpar import build_stays, read_medpar

configure_logging()

config = load_config(sys.argv[1])
client = Client(config.scheduler_address) if config.scheduler_address else Client()
config.work_dir.mkdir(parents=True, exist_ok=True)

medpar = read_medpar(config.medpar_path, config.years)
hospital, snf = build_stays(medpar, config.study_end)

## write to parquet
hospital.to_parquet(work_file(config.work_dir, 'hospital_stays'), index=False)
snf.to_parquet(work_file(config.work_dir, 'snf_stays'), index=False)
client.close()
