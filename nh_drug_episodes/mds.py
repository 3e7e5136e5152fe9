## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE READS MDS 3.0 ASSESSMENTS AND SPLITS THEM INTO ENTRY TRACKING RECORDS, DISCHARGE ASSESSMENTS
## AND OBRA ADMISSION ASSESSMENTS, WHICH ARE THE INPUTS FOR BUILDING NURSING HOME EPISODES

import logging

import dask.dataframe as dd
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

## A0310F_ENTRY_DSCHRG_CD values
ENTRY = '01'
DISCHARGE_NOT_ANTICIPATED = '10'
DISCHARGE_ANTICIPATED = '11'
DEATH_IN_FACILITY = '12'
DISCHARGE_CODES = (DISCHARGE_NOT_ANTICIPATED, DISCHARGE_ANTICIPATED, DEATH_IN_FACILITY)
## A0310A_FED_OBRA_CD value of an OBRA admission assessment
ADMISSION = '01'

## return_anticipated values; the no-discharge sentinel sorts last
RETURN_NOT_ANTICIPATED = 0
RETURN_ANTICIPATED = 1
NO_DISCHARGE = 2

MDS_COLS = ['BENE_ID', 'STATE_CD', 'FAC_PRVDR_INTRNL_ID', 'A0310A_FED_OBRA_CD', 'A0310F_ENTRY_DSCHRG_CD',
            'A1600_ENTRY_DT', 'A2000_DSCHRG_DT', 'TRGT_DT']
DATE_COLS = ['A1600_ENTRY_DT', 'A2000_DSCHRG_DT', 'TRGT_DT']


def read_mds(path, years):
    """Read MDS assessments for `years` (path template with a {} year placeholder) into pandas."""
    mds_lst = []
    for year in years:
        mds = dd.read_parquet(path.format(year))
        ## turn all columns to upper case
        mds.columns = [col.upper() for col in mds.columns]
        ## cross-walked MDS may carry BENE_ID as the index
        if 'BENE_ID' not in mds.columns:
            mds = mds.reset_index()
            mds.columns = [col.upper() for col in mds.columns]
        mds_lst.append(mds[MDS_COLS])
    mds = dd.concat(mds_lst)
    ## exclude mds with missing BENE_ID
    mds = mds[~mds.BENE_ID.isna()]
    ## replace special characters
    mds = mds.replace({'^': np.nan, '-': np.nan, '': np.nan})
    mds = mds.astype(dict(zip(DATE_COLS, ['string'] * len(DATE_COLS))))
    ## change date columns to datetime format
    for col in DATE_COLS:
        mds[col] = dd.to_datetime(mds[col], errors='coerce')
    return mds.compute()


def _code(s):
    ## MDS item codes may be read as numbers; normalize to two-character strings
    s = s.astype('string').str.strip()
    s = s.str.replace(r'\.0$', '', regex=True)
    return s.str.zfill(2).fillna('').astype(str)


def fac_state_id(df):
    ## concate nh provider id with state code to create the unique facility identifier
    fac = pd.to_numeric(df['FAC_PRVDR_INTRNL_ID'], errors='coerce').astype('Int64')
    fac = fac.astype('string').str.zfill(10)
    return (fac + df['STATE_CD'].astype('string')).astype(object).where(fac.notna(), np.nan)


def split_assessments(mds, lookback_date, study_end):
    """Return (entries, discharges, admissions) frames with pipeline column names.

    Records are restricted to entry dates within [lookback_date, study_end]. Entry records without
    a facility id and discharges dated before their entry are dropped.
    """
    mds = mds.copy()
    mds['fac_state_id'] = fac_state_id(mds)
    mds['A0310F_ENTRY_DSCHRG_CD'] = _code(mds['A0310F_ENTRY_DSCHRG_CD'])
    mds['A0310A_FED_OBRA_CD'] = _code(mds['A0310A_FED_OBRA_CD'])
    mds = mds.rename(columns={'A1600_ENTRY_DT': 'entry_date',
                              'A2000_DSCHRG_DT': 'discharge_date',
                              'TRGT_DT': 'asmt_date'})

    ## keep assessments of stays entered between the lookback date and the end of the study
    in_window = (mds['entry_date'] >= lookback_date) & (mds['entry_date'] <= study_end)
    mds = mds[in_window].drop_duplicates()
    logger.info('%d assessments with an entry date in [%s, %s]', len(mds), lookback_date.date(), study_end.date())

    ## entry tracking records
    entries = mds[mds['A0310F_ENTRY_DSCHRG_CD'] == ENTRY]
    nofac = entries['fac_state_id'].isna()
    if nofac.any():
        logger.info('dropped %d entry records without a facility id', int(nofac.sum()))
    entries = entries.loc[~nofac, ['BENE_ID', 'fac_state_id', 'entry_date']].drop_duplicates()

    ## discharge assessments, with or without return anticipated, and death in facility tracking records
    discharges = mds[mds['A0310F_ENTRY_DSCHRG_CD'].isin(DISCHARGE_CODES)].copy()
    ## death in facility records carry the date of death as the discharge date
    discharges['discharge_date'] = discharges['discharge_date'].fillna(
        discharges['asmt_date'].where(discharges['A0310F_ENTRY_DSCHRG_CD'] == DEATH_IN_FACILITY))
    bad = discharges['discharge_date'].isna() | (discharges['discharge_date'] < discharges['entry_date'])
    if bad.any():
        logger.info('dropped %d discharge records with a missing or pre-entry discharge date', int(bad.sum()))
    discharges = discharges[~bad & discharges['fac_state_id'].notna()]
    discharges = discharges.rename(columns={'A0310F_ENTRY_DSCHRG_CD': 'discharge_type'})
    discharges['return_anticipated'] = np.where(discharges['discharge_type'] == DISCHARGE_ANTICIPATED,
                                                RETURN_ANTICIPATED, RETURN_NOT_ANTICIPATED)
    discharges = discharges[['BENE_ID', 'fac_state_id', 'entry_date', 'discharge_date', 'discharge_type',
                             'return_anticipated']]

    ## OBRA admission assessments
    admissions = mds[(mds['A0310A_FED_OBRA_CD'] == ADMISSION) & mds['asmt_date'].notna()]
    admissions = admissions[['BENE_ID', 'fac_state_id', 'entry_date', 'asmt_date']].drop_duplicates()

    return entries, discharges, admissions
