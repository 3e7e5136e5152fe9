## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE HOLDS THE INTERVAL HELPERS SHARED BY THE NURSING HOME, ENROLLMENT AND DAY-LEVEL STEPS:
## LABELING RUNS OF SORTED INTERVALS, COLLAPSING EACH RUN TO ONE INTERVAL AND EXPANDING INTERVALS TO DAYS

import numpy as np
import pandas as pd


def run_starts(df, by, start, end, tolerance=0):
    """Flag rows that open a new run.

    `df` must be sorted by `by` and then `start`. A row opens a new run when it is the first row
    of its group, or when its `start` is later than the running maximum `end` of the group's
    earlier rows plus `tolerance` days. tolerance=0 merges overlapping intervals (sharing a day),
    tolerance=1 also merges intervals that touch (next start is the day after the previous end).
    """
    ## running maximum end over the earlier rows of the same group
    running_end = df.groupby(by, sort=False)[end].cummax()
    previous_end = running_end.groupby([df[col] for col in by], sort=False).shift()
    first = previous_end.isna()
    gap = df[start] > previous_end + pd.Timedelta(days=tolerance)
    return first | gap


def label_runs(new_run):
    ## turn the boolean run-start flags into sequential run ids starting at 1
    return new_run.astype('int64').cumsum()


def collapse_runs(df, run_col, start, end, keys=()):
    """One row per run: the earliest start and the latest end of the run's intervals."""
    agg = {start: (start, 'min'), end: (end, 'max')}
    for key in keys:
        agg[key] = (key, 'first')
    out = df.groupby(run_col, sort=True).agg(**agg).reset_index()
    return out[[run_col] + list(keys) + [start, end]]


def expand_days(df, start, end, cols, day_col='day'):
    """One row per calendar day of each [start, end] interval (inclusive) carrying `cols`."""
    ndays = ((df[end] - df[start]).dt.days + 1).clip(lower=0).fillna(0).astype('int64').to_numpy()
    total = int(ndays.sum())
    out = df[list(cols)].iloc[np.repeat(np.arange(len(df)), ndays)].reset_index(drop=True)
    ## offset of each expanded row from its interval's start
    offsets = np.arange(total) - np.repeat(np.cumsum(ndays) - ndays, ndays)
    starts = np.repeat(df[start].to_numpy(dtype='datetime64[ns]'), ndays)
    out[day_col] = pd.to_datetime(starts) + pd.to_timedelta(offsets, unit='D')
    return out


def overlapping_benes(df, id_col='BENE_ID', start='entry_date', end='discharge_date'):
    """Beneficiaries whose intervals still overlap after sorting by start."""
    df = df.sort_values([id_col, start, end])
    previous_end = df.groupby(id_col, sort=False)[end].shift()
    overlap = df[start] <= previous_end
    return pd.Index(df.loc[overlap, id_col].unique())
