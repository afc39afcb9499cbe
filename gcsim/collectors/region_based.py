"""
Region-based (G1-style) collector.

The heap is a grid of fixed-size regions. Eden regions are assigned on
demand up to a cap; when every eden is full and no more can be assigned the
collector marks, evacuates the live eden cells into the survivor-to region
and returns the emptied eden regions to the unassigned pool. Every
allocation step also drops 30-40% of the live objects in survivor-to.

    ALLOCATING -> MARKING -> EVACUATING -> ALLOCATING

When survivor-to has no room left at collection time a mixed collection
first promotes its residents into tenured regions:

    ALLOCATING -> MIXED_GC -> ALLOCATING
"""

from typing import Dict, List, Optional

from ..config import CollectorKind
from ..errors import NoAvailableSourceError
from ..memory.cells import CellState, MemoryCell
from ..memory.churn import REGION_EDEN_CHURN, REGION_SURVIVOR_CHURN
from ..memory.regions import Region, RegionType, build_regions, first_region, regions_of
from .base import CollectorStrategy, HeapState, Phase, PhaseHandler


class RegionBasedCollector(CollectorStrategy):
    """Eden regions assigned on demand, evacuated into survivor-to"""

    kind = CollectorKind.REGION_BASED
    bounded = False
    hold_durations = {
        Phase.MARKING: 1200,
        Phase.EVACUATING: 1000,
        Phase.MIXED_GC: 1000,
    }

    def build_heap(self) -> HeapState:
        regions = build_regions(self.config.region_grid, self.config.region_size, self.rng)
        cells = [cell for region in regions for cell in region.cells]
        return HeapState(
            collector=self.kind,
            cells=cells,
            regions=regions,
            current_eden_region_count=len(regions_of(regions, RegionType.EDEN))
        )

    def _build_handlers(self) -> Dict[Phase, PhaseHandler]:
        return {
            Phase.ALLOCATING: self._allocating,
            Phase.MARKING: self._evacuate,
            Phase.EVACUATING: self._finish_evacuation,
            Phase.MIXED_GC: self._finish_mixed,
        }

    # ------------------------------------------------------------------
    # Region lookup
    # ------------------------------------------------------------------

    def _require(self, heap: HeapState, region_type: RegionType) -> Region:
        region = first_region(heap.regions, region_type)
        if region is None:
            raise NoAvailableSourceError(
                f"Heap has no {region_type.value} region",
                step=heap.current_step,
                phase=heap.phase.value,
                help_text="region grid is too small to host the seed regions"
            )
        return region

    def _eden_with_capacity(self, heap: HeapState) -> Optional[Region]:
        for region in heap.regions:
            if region.type == RegionType.EDEN and region.has_capacity:
                return region
        return None

    def _assign_region(self, heap: HeapState, region_type: RegionType) -> Optional[Region]:
        """Retype a random unassigned region, or None if none is left"""
        unassigned = regions_of(heap.regions, RegionType.UNASSIGNED)
        if not unassigned:
            return None
        chosen = unassigned[self.churn.pick_index(len(unassigned))]
        chosen.retype(region_type)
        return chosen

    # ------------------------------------------------------------------
    # Allocation and collection triggers
    # ------------------------------------------------------------------

    def _allocating(self, heap: HeapState) -> Phase:
        target = self._eden_with_capacity(heap)

        if target is None and heap.current_eden_region_count < self.config.max_eden_regions:
            target = self._assign_region(heap, RegionType.EDEN)
            if target is not None:
                heap.current_eden_region_count += 1

        survivor = first_region(heap.regions, RegionType.SURVIVOR_TO)

        if target is not None:
            self._allocate(heap, target.cells, REGION_EDEN_CHURN)
            if survivor is not None:
                self._decay_survivors(heap, survivor)
            return Phase.ALLOCATING

        if survivor is not None and not survivor.has_capacity:
            self._promote_survivors(heap, survivor)
            return Phase.MIXED_GC

        self._mark(heap.cells)
        return Phase.MARKING

    def _decay_survivors(self, heap: HeapState, survivor: Region):
        """Objects copied into survivor-to keep dying while the mutator runs"""
        victims = self.churn.decay(survivor.cells, REGION_SURVIVOR_CHURN)
        heap.stats.objects_dereferenced += len(victims)

    # ------------------------------------------------------------------
    # Young collection
    # ------------------------------------------------------------------

    def _evacuate(self, heap: HeapState) -> Phase:
        survivor = self._require(heap, RegionType.SURVIVOR_TO)
        edens = regions_of(heap.regions, RegionType.EDEN)

        live: List[MemoryCell] = [
            cell for region in edens for cell in region.cells_in(CellState.MARKED)
        ]
        garbage = sum(region.count(CellState.DEREFERENCED) for region in edens)

        # Residents outside eden were marked with everyone else; they stay put
        for region in heap.regions:
            if region.type != RegionType.EDEN:
                for cell in region.cells_in(CellState.MARKED):
                    cell.state = CellState.SURVIVED

        destinations = survivor.free_cells()
        copied = min(len(live), len(destinations))
        for obj, destination in zip(live, destinations):
            destination.receive(obj.survived_cycles + 1)

        for region in edens:
            region.retype(RegionType.UNASSIGNED)
        heap.current_eden_region_count = 0

        self._record_copied(heap, copied)
        self._record_freed(heap, garbage)
        self._record_overflow(heap, len(live) - copied, f"survivor-to region {survivor.id}")

        heap.stats.minor_collections += 1
        self._complete_cycle(heap, "evacuation")
        return Phase.EVACUATING

    def _finish_evacuation(self, heap: HeapState) -> Phase:
        self._settle_all(heap)
        return Phase.ALLOCATING

    # ------------------------------------------------------------------
    # Mixed collection
    # ------------------------------------------------------------------

    def _tenured_slots(self, heap: HeapState, needed: int) -> List[MemoryCell]:
        """Free tenured cells, assigning new tenured regions up to the cap"""
        tenured = regions_of(heap.regions, RegionType.TENURED)
        slots = [cell for region in tenured for cell in region.free_cells()]

        while len(slots) < needed and len(tenured) < self.config.max_tenured_regions:
            region = self._assign_region(heap, RegionType.TENURED)
            if region is None:
                break
            tenured.append(region)
            slots.extend(region.free_cells())

        return slots

    def _promote_survivors(self, heap: HeapState, survivor: Region):
        residents = survivor.cells_in(
            CellState.REFERENCED, CellState.SURVIVED, CellState.MARKED
        )
        garbage = survivor.count(CellState.DEREFERENCED)

        destinations = self._tenured_slots(heap, len(residents))
        promoted = min(len(residents), len(destinations))
        for destination in destinations[:promoted]:
            destination.receive(0)

        survivor.clear()

        self._record_promoted(heap, promoted)
        self._record_freed(heap, garbage)
        self._record_overflow(heap, len(residents) - promoted, "tenured regions")

        heap.stats.major_collections += 1
        self._complete_cycle(heap, "mixed")

    def _finish_mixed(self, heap: HeapState) -> Phase:
        self._settle_all(heap)
        return Phase.ALLOCATING

    def _settle_all(self, heap: HeapState):
        for cell in heap.cells:
            cell.settle()
