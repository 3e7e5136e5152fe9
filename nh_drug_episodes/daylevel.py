## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE EXPANDS NURSING HOME, ENROLLMENT, HOSPITAL AND SNF EPISODES TO ONE ROW PER BENEFICIARY-DAY,
## KEEPS THE NURSING HOME DAYS WITH ENROLLMENT AND WITHOUT A HOSPITAL OR SNF STAY,
## AND COLLAPSES THOSE DAYS BACK INTO DRUG-OBSERVABLE EPISODES

import logging

import pandas as pd

from .classify import FULL_ENROLLMENT
from .intervals import expand_days, label_runs, run_starts

logger = logging.getLogger(__name__)

DAY_COLS = ['enroll_day', 'hosp_day', 'snf_day']


def _stay_days(stays, flag):
    days = expand_days(stays, 'entry_date', 'discharge_date', ['BENE_ID'])
    ## overlapping stays produce the same day more than once
    days = days.drop_duplicates(subset=['BENE_ID', 'day'])
    days[flag] = 1
    return days


def observable_days(nh, enrollment, hospital, snf, study_end=None):
    """One row per NH day with enroll_day, hosp_day and snf_day indicators."""
    nh_days = expand_days(nh, 'entry_date', 'discharge_date',
                          ['BENE_ID', 'nh_episode_id', 'enrollcat', 'enroll_start', 'enroll_end'])
    nh_days = nh_days.drop_duplicates(subset=['BENE_ID', 'day'])
    if study_end is not None:
        nh_days = nh_days[nh_days['day'] <= study_end]

    enroll_days = expand_days(enrollment, 'enroll_start', 'enroll_end', ['BENE_ID', 'enroll_start', 'enroll_end'])
    enroll_days = enroll_days.drop_duplicates(subset=['BENE_ID', 'day'])

    days = nh_days.merge(enroll_days, on=['BENE_ID', 'day'], how='left', suffixes=['', '_day'])
    days = days.merge(_stay_days(hospital, 'hosp_day'), on=['BENE_ID', 'day'], how='left')
    days = days.merge(_stay_days(snf, 'snf_day'), on=['BENE_ID', 'day'], how='left')

    ## fully enrolled NH episodes need no day-level enrollment lookup
    full = days['enrollcat'] == FULL_ENROLLMENT
    days['enroll_day'] = (full | days['enroll_start_day'].notna()).astype(int)
    days['enroll_start'] = days['enroll_start'].where(full, days['enroll_start_day'])
    days['enroll_end'] = days['enroll_end'].where(full, days['enroll_end_day'])
    days[['hosp_day', 'snf_day']] = days[['hosp_day', 'snf_day']].fillna(0).astype(int)
    return days.drop(columns=['enroll_start_day', 'enroll_end_day'])


def collapse_days(days):
    """Merge consecutive observable days of the same NH episode into episodes."""
    days = days.sort_values(['BENE_ID', 'nh_episode_id', 'day']).reset_index(drop=True)
    ## the next day must be exactly one day after the running end, within the same NH episode
    days['obs_run'] = label_runs(run_starts(days, ['BENE_ID', 'nh_episode_id'], 'day', 'day', tolerance=1))
    episodes = days.groupby('obs_run').agg(BENE_ID=('BENE_ID', 'first'),
                                           nh_episode_id=('nh_episode_id', 'first'),
                                           obs_start=('day', 'min'),
                                           obs_end=('day', 'max'),
                                           enroll_start=('enroll_start', 'min'),
                                           enroll_end=('enroll_end', 'max'))
    return episodes.reset_index(drop=True)


def drug_observable_episodes(nh, enrollment, hospital, snf, study_end=None):
    """Run the day-level intersection for a batch of NH episodes.

    `nh` holds one row per NH episode needing day-level work; `enrollment`, `hospital` and `snf`
    may cover more beneficiaries than the batch. Returns one row per drug-observable episode
    with the NH episode's attributes carried along.
    """
    benes = nh['BENE_ID'].unique()
    enrollment = enrollment[enrollment['BENE_ID'].isin(benes)]
    enrollment = enrollment.drop_duplicates(subset=['BENE_ID', 'enroll_start', 'enroll_end'])
    hospital = hospital[hospital['BENE_ID'].isin(benes)]
    snf = snf[snf['BENE_ID'].isin(benes)]

    days = observable_days(nh, enrollment, hospital, snf, study_end=study_end)
    observable = days[(days['enroll_day'] == 1) & (days['hosp_day'] == 0) & (days['snf_day'] == 0)]
    logger.info('%d of %d NH days are drug-observable', len(observable), len(days))

    episodes = collapse_days(observable)
    carried = nh.drop(columns=['BENE_ID', 'enroll_start', 'enroll_end', 'partition'], errors='ignore')
    episodes = episodes.merge(carried, on='nh_episode_id', how='left')
    return episodes.sort_values(['BENE_ID', 'nh_episode_id', 'obs_start']).reset_index(drop=True)


def adjacent_episodes(episodes):
    """Drug-observable episodes that touch the previous episode of the same NH episode; should be empty."""
    episodes = episodes.sort_values(['nh_episode_id', 'obs_start'])
    previous_end = episodes.groupby('nh_episode_id')['obs_end'].shift()
    return episodes[episodes['obs_start'] <= previous_end + pd.Timedelta(days=1)]
