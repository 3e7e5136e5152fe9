## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE USES MEDPAR TO IDENTIFY HOSPITAL (SHORT-STAY AND LONG-STAY) AND SKILLED NURSING FACILITY STAYS;
## DRUGS DISPENSED DURING THESE STAYS ARE PAID UNDER PART A AND DO NOT SHOW UP IN PART D CLAIMS

import logging

import dask.dataframe as dd
import pandas as pd

logger = logging.getLogger(__name__)

MEDPAR_COLS = ['BENE_ID', 'MEDPAR_ID', 'ADMSN_DT', 'DSCHRG_DT', 'LOS_DAY_CNT', 'SS_LS_SNF_IND_CD']
## SS_LS_SNF_IND_CD: S = short-stay hospital, L = long-stay hospital, N = SNF
HOSPITAL_CODES = ('S', 'L')
SNF_CODES = ('N',)

STAY_COLS = ['BENE_ID', 'MEDPAR_ID', 'entry_date', 'discharge_date', 'dschrg_missing']


def read_medpar(path, years):
    """Read MedPAR claims for `years` (path template with a {} year placeholder) into pandas."""
    medpar_lst = []
    for year in years:
        df = dd.read_parquet(path.format(year))
        df.columns = [col.upper() for col in df.columns]
        if 'BENE_ID' not in df.columns:
            df = df.reset_index()
            df.columns = [col.upper() for col in df.columns]
        medpar_lst.append(df[MEDPAR_COLS])
    df = dd.concat(medpar_lst)
    df = df.astype({'ADMSN_DT': 'datetime64[ns]',
                    'DSCHRG_DT': 'datetime64[ns]',
                    'SS_LS_SNF_IND_CD': 'str'})
    df['LOS_DAY_CNT'] = dd.to_numeric(df['LOS_DAY_CNT'], errors='coerce')
    return df.compute()


def build_stays(medpar, study_end):
    """Return (hospital, snf) stays with imputed and capped discharge dates."""
    df = medpar[medpar['ADMSN_DT'].notna()].copy()
    df['dschrg_missing'] = df['DSCHRG_DT'].isna().astype(int)
    ## impute a missing discharge date from the length of stay; without one, the stay runs to the end of the study
    los = pd.to_timedelta(df['LOS_DAY_CNT'], unit='D')
    df['discharge_date'] = df['DSCHRG_DT'].fillna(df['ADMSN_DT'] + los).fillna(study_end)
    df['discharge_date'] = df['discharge_date'].where(df['discharge_date'] <= study_end, study_end)
    df = df.rename(columns={'ADMSN_DT': 'entry_date'})

    bad = df['discharge_date'] < df['entry_date']
    if bad.any():
        logger.info('dropped %d MedPAR stays discharged before admission', int(bad.sum()))
    df = df[~bad]

    ## drop duplicated claims
    df = df.drop_duplicates(subset=['BENE_ID', 'MEDPAR_ID'])
    code = df['SS_LS_SNF_IND_CD'].astype(str).str.strip().str.upper()
    hospital = df.loc[code.isin(HOSPITAL_CODES), STAY_COLS].reset_index(drop=True)
    snf = df.loc[code.isin(SNF_CODES), STAY_COLS].reset_index(drop=True)
    logger.info('%d hospital stays and %d SNF stays', len(hospital), len(snf))
    return hospital, snf
