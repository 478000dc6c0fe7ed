"""
Spot Experiment Container

Holds embeddings and feature matrices for one set of spots (or subspots) in a
single xarray Dataset sharing the ``spot`` dimension:

- embedding ``name``        -> ``embedding_<name>``  (spot, <name>_dim)
- measurement set ``id``    -> ``assay_<id>``        (feature, spot)
- alternate feature set     -> ``altexp_<id>``       (<id>_feature, spot)

All mutators return a new SpotExperiment; the wrapped Dataset is never
modified in place.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import xarray as xr


SPOT_DIM = 'spot'
FEATURE_DIM = 'feature'

EMBEDDING_PREFIX = 'embedding_'
ASSAY_PREFIX = 'assay_'
ALTEXP_PREFIX = 'altexp_'

# Per-feature diagnostics stored as ``<set_id>_<metric>`` coordinates
DIAGNOSTIC_METRICS = ('r_squared', 'rmse')

Matrix = Union[pd.DataFrame, xr.DataArray, np.ndarray]


def _as_dataarray(matrix: Matrix, dims: Sequence[str]) -> xr.DataArray:
    """
    Convert a 2D matrix to a DataArray with the given dimension names.

    Default ``RangeIndex`` labels of a DataFrame are treated as absent and
    produce no coordinate.
    """
    if isinstance(matrix, xr.DataArray):
        if matrix.ndim != 2:
            raise ValueError(f"Expected a 2D matrix, got {matrix.ndim} dimensions")
        renames = {old: new for old, new in zip(matrix.dims, dims) if old != new}
        if renames:
            matrix = matrix.rename(renames)
        return matrix.astype(float)

    if isinstance(matrix, pd.DataFrame):
        coords = {}
        for dim, labels in zip(dims, (matrix.index, matrix.columns)):
            if not isinstance(labels, pd.RangeIndex):
                coords[dim] = labels.to_numpy()
        return xr.DataArray(matrix.to_numpy(dtype=float), dims=tuple(dims), coords=coords)

    values = np.asarray(matrix, dtype=float)
    if values.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got {values.ndim} dimensions")
    return xr.DataArray(values, dims=tuple(dims))


class SpotExperiment:
    """
    Embeddings and feature matrices for one resolution (spots or subspots).
    """

    def __init__(self, ds: Optional[xr.Dataset] = None):
        self.ds = ds if ds is not None else xr.Dataset()

    @classmethod
    def from_frames(cls,
                    embeddings: Optional[Dict[str, Matrix]] = None,
                    assays: Optional[Dict[str, Matrix]] = None,
                    altexps: Optional[Dict[str, Matrix]] = None) -> 'SpotExperiment':
        """
        Build an experiment from embedding and feature matrices.

        Parameters:
        -----------
        embeddings : Dict[str, Matrix]
            Embedding name -> (spots × dimensions) matrix
        assays : Dict[str, Matrix]
            Measurement set name -> (features × spots) matrix
        altexps : Dict[str, Matrix]
            Alternate feature set name -> (features × spots) matrix

        Returns:
        --------
        SpotExperiment
        """
        experiment = cls()
        for name, matrix in (embeddings or {}).items():
            experiment = experiment.with_embedding(name, matrix)
        for name, matrix in (assays or {}).items():
            experiment = experiment.with_measurement(name, matrix)
        for name, matrix in (altexps or {}).items():
            experiment = experiment.with_measurement(name, matrix, alt=True)
        return experiment

    @classmethod
    def from_netcdf(cls, path: Union[str, Path]) -> 'SpotExperiment':
        """Load an experiment from NetCDF."""
        with xr.open_dataset(path) as ds:
            return cls(ds.load())

    def to_netcdf(self, path: Union[str, Path]):
        """Save the experiment to NetCDF."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.ds.to_netcdf(path)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _names(self, prefix: str) -> List[str]:
        return [str(v)[len(prefix):] for v in self.ds.data_vars if str(v).startswith(prefix)]

    @property
    def embedding_names(self) -> List[str]:
        return self._names(EMBEDDING_PREFIX)

    @property
    def assay_names(self) -> List[str]:
        return self._names(ASSAY_PREFIX)

    @property
    def altexp_names(self) -> List[str]:
        return self._names(ALTEXP_PREFIX)

    @property
    def n_spots(self) -> int:
        return int(self.ds.sizes.get(SPOT_DIM, 0))

    def __repr__(self) -> str:
        return (f"SpotExperiment(n_spots={self.n_spots}, "
                f"embeddings={self.embedding_names}, "
                f"assays={self.assay_names}, "
                f"altexps={self.altexp_names})")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @staticmethod
    def _measurement_var(set_id: str, alt: bool) -> str:
        return f"{ALTEXP_PREFIX if alt else ASSAY_PREFIX}{set_id}"

    @staticmethod
    def _feature_dim(set_id: str, alt: bool) -> str:
        return f"{set_id}_{FEATURE_DIM}" if alt else FEATURE_DIM

    def get_embedding(self, name: str) -> pd.DataFrame:
        """
        Return embedding ``name`` as a (spots × dimensions) DataFrame.

        Raises KeyError if the embedding is not present.
        """
        var = f"{EMBEDDING_PREFIX}{name}"
        if var not in self.ds:
            raise KeyError(f"Embedding '{name}' not found. Available: {self.embedding_names}")
        return self.ds[var].to_pandas().copy()

    def get_measurement(self, set_id: str, alt: bool = False) -> xr.DataArray:
        """
        Return measurement set ``set_id`` as a (features × spots) DataArray.

        The feature dimension carries no coordinate when feature names were
        never assigned.
        """
        var = self._measurement_var(set_id, alt)
        if var not in self.ds:
            available = self.altexp_names if alt else self.assay_names
            kind = "Alternate feature set" if alt else "Measurement set"
            raise KeyError(f"{kind} '{set_id}' not found. Available: {available}")
        return self.ds[var].copy()

    # ------------------------------------------------------------------
    # Non-destructive mutators
    # ------------------------------------------------------------------

    def _check_spots(self, ds: xr.Dataset, da: xr.DataArray):
        if SPOT_DIM not in ds.dims:
            return
        if ds.sizes[SPOT_DIM] != da.sizes[SPOT_DIM]:
            raise ValueError(
                f"Matrix has {da.sizes[SPOT_DIM]} spots, experiment has {ds.sizes[SPOT_DIM]}"
            )
        if SPOT_DIM in ds.indexes and SPOT_DIM in da.indexes:
            if not ds.indexes[SPOT_DIM].equals(da.indexes[SPOT_DIM]):
                raise ValueError("Matrix spot labels do not match experiment spot labels")

    def with_embedding(self, name: str, matrix: Matrix) -> 'SpotExperiment':
        """Return a copy with embedding ``name`` set to ``matrix`` (spots × dimensions)."""
        var = f"{EMBEDDING_PREFIX}{name}"
        dim = f"{name}_dim"
        da = _as_dataarray(matrix, (SPOT_DIM, dim))

        ds = self.ds.drop_vars([v for v in (var, dim) if v in self.ds.variables])
        self._check_spots(ds, da)
        return SpotExperiment(ds.assign({var: da}))

    def with_measurement(self,
                         set_id: str,
                         matrix: Matrix,
                         alt: bool = False,
                         diagnostics: Optional[pd.Series] = None) -> 'SpotExperiment':
        """
        Return a copy with measurement set ``set_id`` set to ``matrix``.

        Parameters:
        -----------
        set_id : str
            Name of the measurement set
        matrix : Matrix
            (features × spots) matrix
        alt : bool
            Store as an alternate feature set with its own feature dimension
        diagnostics : pd.Series, optional
            Per-feature values stored as coordinate ``<set_id>_<name>``

        Returns:
        --------
        SpotExperiment
        """
        var = self._measurement_var(set_id, alt)
        feature_dim = self._feature_dim(set_id, alt)
        da = _as_dataarray(matrix, (feature_dim, SPOT_DIM))

        if diagnostics is not None:
            values = diagnostics
            if feature_dim in da.indexes:
                values = diagnostics.reindex(da.indexes[feature_dim])
            da = da.assign_coords(
                {f"{set_id}_{diagnostics.name}": (feature_dim, np.asarray(values, dtype=float))}
            )

        # Drop the old set and its diagnostics
        stale = [f"{set_id}_{metric}" for metric in DIAGNOSTIC_METRICS]
        stale = [c for c in stale if c in self.ds.coords]
        ds = self.ds.drop_vars([v for v in [var] + stale if v in self.ds.variables])

        users = [v for v in ds.data_vars if feature_dim in ds[v].dims]
        if users:
            # Feature dimension shared with other measurement sets
            if ds.sizes[feature_dim] != da.sizes[feature_dim]:
                raise ValueError(
                    f"Matrix has {da.sizes[feature_dim]} features, "
                    f"existing sets {users} have {ds.sizes[feature_dim]}"
                )
            if feature_dim in ds.indexes and feature_dim in da.indexes:
                if not ds.indexes[feature_dim].equals(da.indexes[feature_dim]):
                    raise ValueError(f"Feature labels conflict with existing sets {users}")
        else:
            ds = ds.drop_vars([c for c in ds.coords if feature_dim in ds[c].dims])

        self._check_spots(ds, da)
        return SpotExperiment(ds.assign({var: da}))
