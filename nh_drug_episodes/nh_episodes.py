## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE BUILDS NURSING HOME RESIDENCY EPISODES FROM PAIRED ENTRY AND DISCHARGE ASSESSMENTS
## ENTRY-ANCHORED EPISODES MERGE ALL OVERLAPPING ENTRY-DISCHARGE PAIRS OF A RESIDENT;
## ADMISSION-ANCHORED EPISODES FURTHER MERGE STAYS BROKEN BY A DISCHARGE WITH RETURN ANTICIPATED
## AND START AT THE FIRST STAY WITH AN OBRA ADMISSION ASSESSMENT

import logging

import numpy as np
import pandas as pd

from .intervals import label_runs, overlapping_benes, run_starts
from .mds import NO_DISCHARGE, RETURN_ANTICIPATED, RETURN_NOT_ANTICIPATED

logger = logging.getLogger(__name__)

## days allowed between a discharge with return anticipated and the next entry
RETURN_WINDOW_DAYS = 30

EPISODE_COLS = ['BENE_ID', 'nh_episode_id', 'fac_state_id', 'entry_date', 'discharge_date', 'discharge_type',
                'return_anticipated', 'no_discharge', 'admsn_asmt_date', 'death_dt', 'death_error', 'death_match']


def build_ed_pairs(entries, discharges, admissions, study_end):
    """Match each entry record to its discharge and earliest admission assessment."""
    keys = ['BENE_ID', 'fac_state_id', 'entry_date']

    ## for each entry, keep the earliest discharge; on the same date prefer return not anticipated
    discharges = discharges.sort_values(keys + ['discharge_date', 'return_anticipated'])
    discharges = discharges.drop_duplicates(subset=keys, keep='first')

    pairs = entries[keys].drop_duplicates().merge(discharges, on=keys, how='left')
    ## entries without a discharge are assumed to stay until the end of the study
    pairs['no_discharge'] = pairs['discharge_date'].isna().astype(int)
    pairs['discharge_date'] = pairs['discharge_date'].fillna(study_end)
    pairs['return_anticipated'] = pairs['return_anticipated'].fillna(NO_DISCHARGE).astype(int)
    logger.info('%d entry-discharge pairs, %d without a discharge record', len(pairs), int(pairs['no_discharge'].sum()))

    ## earliest admission assessment for each entry
    admsn = admissions.groupby(keys)['asmt_date'].min().rename('admsn_asmt_date').reset_index()
    pairs = pairs.merge(admsn, on=keys, how='left')
    return pairs


def apply_death_correction(episodes, deaths):
    """Drop episodes that start after death and end the ones that continue past it at the date of death."""
    df = episodes.drop(columns=['death_dt'], errors='ignore').merge(deaths, on='BENE_ID', how='left')
    df['death_dt'] = pd.to_datetime(df['death_dt'])
    if 'death_error' not in df.columns:
        df['death_error'] = 0

    after_death = df['death_dt'] < df['entry_date']
    if after_death.any():
        logger.info('dropped %d episodes starting after the date of death', int(after_death.sum()))
    df = df[~after_death].copy()

    ## the resident died before the recorded discharge
    died_during = (df['death_dt'] >= df['entry_date']) & (df['death_dt'] < df['discharge_date'])
    df.loc[died_during, 'discharge_date'] = df.loc[died_during, 'death_dt']
    df.loc[died_during, 'discharge_type'] = np.nan
    df.loc[died_during, 'return_anticipated'] = RETURN_NOT_ANTICIPATED
    df['death_error'] = (df['death_error'].astype(bool) | died_during).astype(int)
    df['death_match'] = (df['death_dt'] == df['discharge_date']).astype(int)
    return df


def drop_zero_length(episodes):
    zero = episodes['entry_date'] >= episodes['discharge_date']
    if zero.any():
        logger.info('dropped %d zero-length episodes', int(zero.sum()))
    return episodes[~zero]


def build_entry_episodes(pairs, deaths):
    """Collapse entry-discharge pairs into non-overlapping entry-anchored episodes."""
    df = pairs.sort_values(['BENE_ID', 'entry_date', 'discharge_date']).reset_index(drop=True)
    df['nh_episode_id'] = label_runs(run_starts(df, ['BENE_ID'], 'entry_date', 'discharge_date'))

    ## episode boundaries over all pairs sharing an id
    bounds = df.groupby('nh_episode_id').agg(ep_entry=('entry_date', 'min'),
                                             ep_discharge=('discharge_date', 'max'),
                                             BENE_ID=('BENE_ID', 'first')).reset_index()

    ## exclude residents whose episodes still overlap on a second pass
    double = overlapping_benes(bounds, start='ep_entry', end='ep_discharge')
    if len(double):
        logger.warning('excluded %d residents with overlapping episodes after collapsing', len(double))
        df = df[~df['BENE_ID'].isin(double)]
        bounds = bounds[~bounds['BENE_ID'].isin(double)]

    ## keep the pair that ends the episode; prefer return not anticipated on ties
    df = df.merge(bounds.drop(columns='BENE_ID'), on='nh_episode_id')
    last = df[df['discharge_date'] == df['ep_discharge']]
    last = last.sort_values(['nh_episode_id', 'return_anticipated']).drop_duplicates('nh_episode_id')

    ## earliest admission assessment within any pair of the episode
    admsn = df.groupby('nh_episode_id')['admsn_asmt_date'].min()

    episodes = last.drop(columns=['entry_date', 'discharge_date', 'admsn_asmt_date'])
    episodes = episodes.rename(columns={'ep_entry': 'entry_date', 'ep_discharge': 'discharge_date'})
    episodes = episodes.merge(admsn.reset_index(), on='nh_episode_id', how='left')

    episodes = drop_zero_length(apply_death_correction(episodes, deaths))
    logger.info('%d entry-anchored episodes for %d residents', len(episodes), episodes['BENE_ID'].nunique())
    return episodes[EPISODE_COLS].sort_values(['BENE_ID', 'entry_date']).reset_index(drop=True)


def build_admission_episodes(entry_episodes, deaths, return_window=RETURN_WINDOW_DAYS):
    """Merge entry-anchored episodes into admission-anchored episodes."""
    df = entry_episodes.sort_values(['BENE_ID', 'entry_date']).reset_index(drop=True)

    ## days between the previous discharge and this entry
    previous = df.groupby('BENE_ID')[['discharge_date', 'return_anticipated']].shift()
    df['gap'] = (df['entry_date'] - previous['discharge_date']).dt.days

    ## a new admission starts after a discharge with no return anticipated (or death),
    ## or after a discharge with return anticipated when the resident did not come back in time
    new_admission = (previous['discharge_date'].isna() |
                     (previous['return_anticipated'] == RETURN_NOT_ANTICIPATED) |
                     ((previous['return_anticipated'] == RETURN_ANTICIPATED) & (df['gap'] > return_window)))
    df['admsn_group'] = label_runs(new_admission)

    ## drop the stays of an admission before its first OBRA admission assessment
    df['after_admsn'] = df['admsn_asmt_date'].notna().astype(int).groupby(df['admsn_group']).cummax().astype(bool)
    before = ~df['after_admsn']
    if before.any():
        logger.info('dropped %d entry-anchored episodes before the first admission assessment', int(before.sum()))
    df = df[df['after_admsn']]

    first = df.drop_duplicates('admsn_group', keep='first').set_index('admsn_group')
    last = df.drop_duplicates('admsn_group', keep='last').set_index('admsn_group')

    episodes = last[['BENE_ID', 'fac_state_id', 'discharge_type', 'return_anticipated', 'no_discharge',
                     'death_error']].copy()
    episodes['entry_date'] = first['entry_date']
    episodes['admsn_asmt_date'] = first['admsn_asmt_date']
    episodes['discharge_date'] = df.groupby('admsn_group')['discharge_date'].max()
    episodes = episodes.rename_axis('nh_episode_id').reset_index()

    episodes = drop_zero_length(apply_death_correction(episodes, deaths))
    logger.info('%d admission-anchored episodes for %d residents', len(episodes), episodes['BENE_ID'].nunique())
    return episodes[EPISODE_COLS].sort_values(['BENE_ID', 'entry_date']).reset_index(drop=True)
