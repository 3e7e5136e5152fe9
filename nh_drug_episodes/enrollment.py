## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE USES THE MBSF A/B/D SUMMARY TO BUILD CONTINUOUS ENROLLMENT EPISODES IN FEE-FOR-SERVICE
## MEDICARE WITH PARTS A, B AND D COVERAGE; IT ALSO COLLECTS DATES OF DEATH FOR THE NURSING HOME EPISODES

import logging

import dask.dataframe as dd
import pandas as pd

from .config import FFS_CODES, PARTD_PREFIXES, PARTS_AB_CODES
from .intervals import collapse_runs, label_runs, run_starts

logger = logging.getLogger(__name__)

## monthly indicator columns in MBSF and the names used after reshaping from wide to long
MONTHLY_STUBS = {'HMO_IND_': 'hmo',
                 'MDCR_ENTLMT_BUYIN_IND_': 'buyin',
                 'PTD_CNTRCT_ID_': 'ptd'}
MONTHLY_COLS = ['{0}{1:02d}'.format(stub, m) for stub in MONTHLY_STUBS for m in range(1, 13)]
MBSF_COLS = ['BENE_ID', 'BENE_BIRTH_DT', 'BENE_DEATH_DT'] + MONTHLY_COLS


def read_mbsf(path, years):
    """Read the MBSF summary for `years` (path template with a {} year placeholder) into pandas."""
    mbsf_lst = []
    for year in years:
        mbsf = dd.read_parquet(path.format(year))
        mbsf.columns = [col.upper() for col in mbsf.columns]
        if 'BENE_ID' not in mbsf.columns:
            mbsf = mbsf.reset_index()
            mbsf.columns = [col.upper() for col in mbsf.columns]
        mbsf = mbsf[MBSF_COLS]
        mbsf['year'] = year
        mbsf_lst.append(mbsf)
    mbsf = dd.concat(mbsf_lst)
    mbsf = mbsf.astype(dict(zip(MONTHLY_COLS, ['str'] * len(MONTHLY_COLS))))
    for col in ['BENE_BIRTH_DT', 'BENE_DEATH_DT']:
        mbsf[col] = dd.to_datetime(mbsf[col], errors='coerce')
    return mbsf.compute()


def death_dates(mbsf):
    ## the latest non-missing date of death reported across MBSF years
    deaths = mbsf[mbsf['BENE_DEATH_DT'].notna()]
    return deaths.groupby('BENE_ID')['BENE_DEATH_DT'].max().rename('death_dt').reset_index()


def monthly_enrollment(mbsf, ffs_codes=FFS_CODES, parts_ab_codes=PARTS_AB_CODES, partd_prefixes=PARTD_PREFIXES):
    """Reshape MBSF from one row per beneficiary-year to one row per beneficiary-month with enrollment flags."""
    mbsf = mbsf.drop_duplicates(subset=['BENE_ID', 'year'])
    ## reshape data from wide to long
    monthly = pd.wide_to_long(mbsf[['BENE_ID', 'year', 'BENE_DEATH_DT'] + MONTHLY_COLS],
                              stubnames=list(MONTHLY_STUBS), i=['BENE_ID', 'year'], j='month',
                              suffix=r'\d+').reset_index()
    monthly = monthly.rename(columns=MONTHLY_STUBS)
    monthly['month'] = monthly['month'].astype(int)
    monthly['month_start'] = pd.to_datetime(pd.DataFrame({'year': monthly['year'],
                                                          'month': monthly['month'],
                                                          'day': 1}))
    monthly['month_end'] = monthly['month_start'] + pd.offsets.MonthEnd(0)

    ## the month of death is credited; the indicators are not reliable after the date of death
    death = monthly['BENE_DEATH_DT']
    died_in_month = (death >= monthly['month_start']) & (death <= monthly['month_end'])

    for col in ['hmo', 'buyin', 'ptd']:
        monthly[col] = monthly[col].astype(str).str.strip().str.upper()
    monthly['ffs'] = monthly['hmo'].isin(ffs_codes) | died_in_month
    monthly['parts_ab'] = monthly['buyin'].isin(parts_ab_codes) | died_in_month
    monthly['partd'] = monthly['ptd'].str[:1].isin(partd_prefixes) | died_in_month
    monthly['enrolled'] = monthly['ffs'] & monthly['parts_ab'] & monthly['partd']
    return monthly.sort_values(['BENE_ID', 'month_start']).reset_index(drop=True)


def build_enrollment_episodes(monthly):
    """Collapse consecutive enrolled months into enrollment episodes."""
    months = monthly[monthly['enrolled']].sort_values(['BENE_ID', 'month_start']).reset_index(drop=True)
    ## a month continues the run only if it starts the day after the previous month ends
    months['enroll_episode_id'] = label_runs(run_starts(months, ['BENE_ID'], 'month_start', 'month_end',
                                                        tolerance=1))
    episodes = collapse_runs(months, 'enroll_episode_id', 'month_start', 'month_end', keys=['BENE_ID'])
    episodes = episodes.rename(columns={'month_start': 'enroll_start', 'month_end': 'enroll_end'})
    logger.info('%d enrollment episodes for %d beneficiaries', len(episodes), episodes['BENE_ID'].nunique())
    return episodes[['BENE_ID', 'enroll_episode_id', 'enroll_start', 'enroll_end']]
