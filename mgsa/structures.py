#!/usr/bin/env python
# -*- coding: UTF-8 -*-

# Copyright (c) 2011 Christopher D. Lasher
#
# This software is released under the MIT License. Please see
# LICENSE.txt for details.


"""Data structures for the MGSA programs."""


import collections

import networkx
import numpy

from mgsa.mcmc import defaults
from mgsa.mcmc.defaults import FIXED, SAMPLED, EM, PARAMETER_MODES

import logging
logger = logging.getLogger('mgsa.structures')


class Annotations(object):
    """Associations between annotation terms and the items (genes or
    gene products) they annotate.

    The "total" annotations of a term are expected to be resolved
    transitively across the term hierarchy by whoever builds this
    container; the "direct" annotations are the subset that were
    stated explicitly.

    """
    def __init__(self):
        """Create a new, empty instance."""
        self._terms_to_items = {}
        self._terms_to_direct_items = {}
        self._items_to_terms = {}
        self._synonyms_to_items = {}
        self._term_names = {}
        self.num_total_annotations = 0


    @classmethod
    def from_mapping(cls, terms_to_items, direct_terms_to_items=None):
        """Creates an instance from a mapping of terms to items.

        :Parameters:
        - `terms_to_items`: a mapping with annotation terms as keys and
          iterables of items as values (the total annotations)
        - `direct_terms_to_items`: a mapping like `terms_to_items`
          giving the direct annotations; if `None`, all annotations are
          taken to be direct

        """
        annotations = cls()
        for term, items in terms_to_items.items():
            if direct_terms_to_items is None:
                direct_items = items
            else:
                direct_items = direct_terms_to_items.get(term, ())
            direct_items = frozenset(direct_items)
            for item in items:
                annotations.add_annotation(item, term,
                        direct=(item in direct_items))
        return annotations


    def add_annotation(self, item, term, direct=True):
        """Annotates an item with a term.

        :Parameters:
        - `item`: the item (gene) identifier
        - `term`: the annotation term
        - `direct`: `True` if the annotation was stated explicitly,
          `False` if it was inferred through the term hierarchy

        """
        term_items = self._terms_to_items.setdefault(term, [])
        item_terms = self._items_to_terms.setdefault(item, [])
        if term not in item_terms:
            term_items.append(item)
            item_terms.append(term)
            self.num_total_annotations += 1
        if direct:
            direct_items = self._terms_to_direct_items.setdefault(term,
                    [])
            if item not in direct_items:
                direct_items.append(item)


    def add_synonym(self, item, synonym):
        """Registers an alternative name for an item."""
        self._synonyms_to_items[synonym] = item


    def resolve_item(self, name):
        """Returns the annotated item known by `name`, either directly or
        through a synonym.

        Returns `None` if the name is unknown.

        """
        if name in self._items_to_terms:
            return name
        item = self._synonyms_to_items.get(name)
        if item in self._items_to_terms:
            return item
        return None


    def set_term_name(self, term, name):
        """Sets a human-readable label for a term."""
        self._term_names[term] = name


    def get_term_name(self, term):
        """Returns the label of a term, or the term itself if no label
        is known.

        """
        return self._term_names.get(term, term)


    def get_annotated_items(self, term):
        """Returns a `list` of all items annotated by `term`."""
        return self._terms_to_items.get(term, [])


    def get_directly_annotated_items(self, term):
        """Returns a `list` of items annotated directly by `term`."""
        return self._terms_to_direct_items.get(term, [])


    def get_annotating_terms(self, item):
        """Returns a `list` of terms annotating `item`."""
        return self._items_to_terms.get(item, [])


    def is_directly_annotated(self, item, term):
        return item in self._terms_to_direct_items.get(term, ())


    def has_item(self, item):
        return self.resolve_item(item) is not None


    def get_all_items(self):
        """Returns a `list` of all annotated items."""
        return list(self._items_to_terms)


    def get_all_terms(self):
        """Returns a `list` of all terms, in the order in which they
        were first seen.

        """
        return list(self._terms_to_items)


    def __contains__(self, term):
        return term in self._terms_to_items


    def __iter__(self):
        return iter(self._terms_to_items)


    def __len__(self):
        return len(self._terms_to_items)


def get_annotations_stats(annotations):
    """Get annotations statistics from an `Annotations` instance.

    Returns a dictionary with the following keys:
    - `'num_annotation_terms'`: the number of distinct terms that appear
      among the annotations
    - `'num_total_annotations'`: the total number of annotations
      (term-to-gene pairings)
    - `'num_genes'`: the number of genes with at least one annotation

    :Parameters:
    - `annotations`: an `Annotations` instance

    """
    stats = {
            'num_annotation_terms': len(annotations),
            'num_total_annotations': annotations.num_total_annotations,
            'num_genes': len(annotations.get_all_items())
    }
    return stats


TermAnnotatedItems = collections.namedtuple('TermAnnotatedItems',
        ['total', 'direct'])


class TermEnumerator(object):
    """Enumerates the terms annotating a set of items, and for each
    term, which of the items it annotates.

    """
    def __init__(self, annotations, items, values=None):
        """Create a new instance.

        :Parameters:
        - `annotations`: an `Annotations` instance
        - `items`: an iterable of item identifiers (synonyms are
          resolved)
        - `values`: an optional mapping from the given item identifiers
          to a continuous value

        """
        self._terms_to_items = {}
        self._terms_to_direct_items = {}
        self._items_to_terms = {}
        self._item_values = {}
        self.unannotated_items = []
        for name in items:
            item = annotations.resolve_item(name)
            if item is None:
                self.unannotated_items.append(name)
                continue
            if item in self._items_to_terms:
                continue
            terms = annotations.get_annotating_terms(item)
            self._items_to_terms[item] = list(terms)
            if values is not None:
                self._item_values[item] = values[name]
            for term in terms:
                self._terms_to_items.setdefault(term, []).append(item)
                if annotations.is_directly_annotated(item, term):
                    self._terms_to_direct_items.setdefault(term,
                            []).append(item)
        # Terms follow the order of the annotations, not of the items.
        self._terms = [term for term in annotations if term in
                self._terms_to_items]
        if self.unannotated_items:
            logger.debug("{0} items lack annotations.".format(
                    len(self.unannotated_items)))


    def get_annotated_items(self, term):
        """Returns a `TermAnnotatedItems` tuple of the total and direct
        items annotated by `term`.

        """
        return TermAnnotatedItems(
                self._terms_to_items.get(term, []),
                self._terms_to_direct_items.get(term, [])
        )


    def get_all_annotated_terms(self):
        """Returns a `list` of all terms annotating at least one item."""
        return list(self._terms)


    def get_items(self):
        """Returns a `list` of all annotated items."""
        return list(self._items_to_terms)


    def get_terms_annotated_to_item(self, item):
        return self._items_to_terms.get(item, [])


    def get_item_value(self, item):
        return self._item_values[item]


    def calc_num_terms(self):
        return len(self._terms)


    def calc_num_items(self):
        return len(self._items_to_terms)


    def __iter__(self):
        return iter(self._terms)


class ItemSet(object):
    """An ordered collection of item identifiers, each optionally
    carrying a continuous value.

    """
    def __init__(self, name, items=None, values=None):
        """Create a new instance.

        :Parameters:
        - `name`: a name for the set
        - `items`: an iterable of item identifiers
        - `values`: a mapping from item identifiers to values

        """
        self.name = name
        self._items = {}
        if items is not None:
            for item in items:
                self.add_item(item)
        if values is not None:
            for item, value in values.items():
                self.add_item(item, value)


    def add_item(self, item, value=None):
        if value is None and item in self._items:
            return
        self._items[item] = value


    def add_items(self, items):
        for item in items:
            self.add_item(item)


    def remove_item(self, item):
        del self._items[item]


    def remove_items(self, items):
        for item in items:
            self._items.pop(item, None)


    def get_value(self, item):
        return self._items[item]


    def get_items(self):
        return list(self._items)


    def has_valued_items(self):
        """Returns `True` if any item carries a value."""
        return any(value is not None for value in self._items.values())


    def has_only_valued_items(self):
        """Returns `True` if the set is non-empty and every item carries
        a value.

        """
        return bool(self._items) and all(value is not None for value in
                self._items.values())


    def enumerate_terms(self, annotations):
        """Returns a `TermEnumerator` for the items of this set.

        :Parameters:
        - `annotations`: an `Annotations` instance

        """
        if self.has_only_valued_items():
            values = self._items
        else:
            values = None
        return TermEnumerator(annotations, self._items, values)


    def __contains__(self, item):
        return item in self._items


    def __iter__(self):
        return iter(self._items)


    def __len__(self):
        return len(self._items)


class PopulationSet(ItemSet):
    """The background collection of items under consideration."""
    pass


class StudySet(ItemSet):
    """The subset of items flagged as being of interest."""
    pass


class IndexMapper(object):
    """Maps identifiers to dense integer indices in ``[0, N)``, and back,
    preserving the order in which the identifiers were given.

    """
    def __init__(self, items):
        """Create a new instance.

        :Parameters:
        - `items`: an iterable of unique, hashable identifiers

        """
        self._items = list(items)
        self._items_to_indices = {}
        for i, item in enumerate(self._items):
            if item in self._items_to_indices:
                raise ValueError("Duplicate identifier {0!r}.".format(
                        item))
            self._items_to_indices[item] = i


    def get_index(self, item):
        """Returns the index of an identifier.

        Raises `KeyError` if the identifier is unknown.

        """
        return self._items_to_indices[item]


    def get_item(self, index):
        """Returns the identifier at a particular index."""
        return self._items[index]


    def get_dense(self, items):
        """Returns a `numpy.ndarray` of the indices of the known
        identifiers among `items`; unknown identifiers are skipped.

        """
        indices = [self._items_to_indices[item] for item in items if
                item in self._items_to_indices]
        return numpy.array(indices, dtype=int)


    def __contains__(self, item):
        return item in self._items_to_indices


    def __iter__(self):
        return iter(self._items)


    def __len__(self):
        return len(self._items)


class TermItemsArray(object):
    """For each term index, the sorted indices of the items the term
    annotates.

    """
    def __init__(self, term_enumerator, term_mapper, item_mapper):
        """Create a new instance.

        :Parameters:
        - `term_enumerator`: a `TermEnumerator` supplying the annotated
          items of every term
        - `term_mapper`: an `IndexMapper` for the terms
        - `item_mapper`: an `IndexMapper` for the items

        """
        self._num_items = len(item_mapper)
        # _terms_items will be our list data structure by which we'll
        # get the item indices for a term represented by a particular
        # index.
        self._terms_items = []
        for term in term_mapper:
            annotated = term_enumerator.get_annotated_items(term).total
            self._terms_items.append(numpy.unique(
                    item_mapper.get_dense(annotated)))


    def get_annotated_items(self, term_index):
        """Returns a sorted `numpy.ndarray` of item indices annotated by
        a term.

        :Parameters:
        - `term_index`: index of the term of interest

        """
        return self._terms_items[term_index]


    def calc_num_terms(self):
        return len(self._terms_items)


    def calc_num_items(self):
        return self._num_items


    def calc_num_annotations(self):
        """Returns the number of term-item edges."""
        return sum(len(items) for items in self._terms_items)


    def report_term_components(self):
        """Logs the connected components formed by terms sharing items.

        Returns the number of connected components.

        """
        logger.info("Checking components of the term-item graph.")
        terms_graph = networkx.Graph()
        for term_index, items in enumerate(self._terms_items):
            terms_graph.add_node(('term', term_index))
            terms_graph.add_edges_from((('term', term_index), ('item',
                    int(item))) for item in items)
        component_sizes = []
        for component in networkx.connected_components(terms_graph):
            num_terms = sum(1 for node in component if node[0] ==
                    'term')
            component_sizes.append((num_terms, len(component) -
                    num_terms))
        logger.info("{0} annotations from {1} terms to {2} items.".format(
                self.calc_num_annotations(), self.calc_num_terms(),
                self._num_items))
        logger.info("Term-item graph forms {0} connected "
                "component(s)".format(len(component_sizes)))
        logger.debug("Component sizes:\nTerms\tItems\n{0}".format(
                '\n'.join('{0}\t{1}'.format(*sizes) for sizes in
                    component_sizes))
        )
        return len(component_sizes)


class HyperParameter(object):
    """Describes how a parameter of the likelihood function is treated:
    held fixed, sampled by the Markov chain, or estimated by
    expectation-maximization.

    """
    def __init__(self, mode=SAMPLED, value=None, minimum=None,
            maximum=None):
        """Create a new instance.

        :Parameters:
        - `mode`: one of ``'fixed'``, ``'sampled'``, ``'em'``
        - `value`: the value of a fixed parameter; the starting value of
          a parameter estimated by EM, or the starting point of a
          sampled one
        - `minimum`: the lower bound of the candidate values of a
          sampled parameter
        - `maximum`: the upper bound of the candidate values of a
          sampled parameter

        """
        if mode not in PARAMETER_MODES:
            raise ValueError("Unknown parameter mode {0!r}; expected one "
                    "of {1}".format(mode, ', '.join(PARAMETER_MODES)))
        if mode == FIXED and value is None:
            raise ValueError("A fixed parameter requires a value.")
        if (minimum is not None and maximum is not None and
                minimum > maximum):
            raise ValueError("minimum {0} exceeds maximum {1}".format(
                    minimum, maximum))
        self.mode = mode
        self.value = value
        self.minimum = minimum
        self.maximum = maximum


    @classmethod
    def fixed(cls, value):
        return cls(FIXED, value)


    @classmethod
    def sampled(cls, minimum=None, maximum=None):
        return cls(SAMPLED, minimum=minimum, maximum=maximum)


    @classmethod
    def em(cls, start=None):
        return cls(EM, start)


    @property
    def is_fixed(self):
        return self.mode == FIXED


    @property
    def is_sampled(self):
        return self.mode == SAMPLED


    @property
    def is_em(self):
        return self.mode == EM


    def __repr__(self):
        return ("HyperParameter(mode={0.mode!r}, value={0.value!r}, "
                "minimum={0.minimum!r}, maximum={0.maximum!r})").format(
                    self)


def _to_hyperparameter(name, value):
    if isinstance(value, HyperParameter):
        return value
    if isinstance(value, str):
        return HyperParameter(value)
    try:
        return HyperParameter.fixed(float(value))
    except (TypeError, ValueError):
        raise ValueError("{0} must be a number, a parameter mode, or a "
                "HyperParameter; got {1!r}".format(name, value))


class MgsaSettings(object):
    """Structure storing the options of an MGSA calculation."""
    def __init__(
            self,
            random_seed=0,
            alpha=None,
            beta=None,
            expected_number_of_terms=None,
            use_prior=True,
            integrate_params=False,
            take_population_as_reference=True,
            mcmc_steps=defaults.NUM_STEPS,
            burn_in=defaults.BURN_IN,
            update_report_interval_ms=defaults.UPDATE_REPORT_INTERVAL_MS,
            random_start=False,
            valued_shape=defaults.VALUED_SHAPE,
            max_em_iterations=defaults.MAX_EM_ITERATIONS
        ):
        """Create a new instance.

        :Parameters:
        - `random_seed`: seed of the random stream; ``0`` derives a
          seed from system entropy
        - `alpha`: the false-positive rate: a number (held fixed), a
          parameter mode, or a `HyperParameter` [default: sampled]
        - `beta`: the false-negative rate, given as for `alpha`
          [default: sampled]
        - `expected_number_of_terms`: the expected number of active
          terms, given as for `alpha` [default: sampled]
        - `use_prior`: `True` if the prior on the number of active terms
          is part of the score
        - `integrate_params`: `True` if sampled parameters should be
          integrated out of the score over their candidate values rather
          than walked by the chain
        - `take_population_as_reference`: `True` to report every term
          annotating the population, `False` to report only terms
          annotating the study set
        - `mcmc_steps`: the total number of steps of each chain
        - `burn_in`: the number of initial steps of each chain that are
          not recorded
        - `update_report_interval_ms`: milliseconds between progress
          reports
        - `random_start`: `True` to start each chain from a random set
          of active terms rather than the empty set
        - `valued_shape`: the shape of the Beta(a, 1) density of the
          values of covered items in valued calculations
        - `max_em_iterations`: the number of chains run when any
          parameter is estimated by EM

        """
        if mcmc_steps < 0:
            raise ValueError("mcmc_steps must be non-negative.")
        if burn_in < 0:
            raise ValueError("burn_in must be non-negative.")
        if update_report_interval_ms < 0:
            raise ValueError("update_report_interval_ms must be "
                    "non-negative.")
        if max_em_iterations < 1:
            raise ValueError("max_em_iterations must be at least 1.")
        if not 0 < valued_shape < 1:
            raise ValueError("valued_shape must lie in (0, 1).")
        self.random_seed = random_seed
        self.alpha = _to_hyperparameter('alpha',
                SAMPLED if alpha is None else alpha)
        self.beta = _to_hyperparameter('beta',
                SAMPLED if beta is None else beta)
        self.expected_number_of_terms = _to_hyperparameter(
                'expected_number_of_terms', SAMPLED if
                expected_number_of_terms is None else
                expected_number_of_terms)
        self.use_prior = use_prior
        self.integrate_params = integrate_params
        self.take_population_as_reference = take_population_as_reference
        self.mcmc_steps = mcmc_steps
        self.burn_in = burn_in
        self.update_report_interval_ms = update_report_interval_ms
        self.random_start = random_start
        self.valued_shape = valued_shape
        self.max_em_iterations = max_em_iterations


    def get_parameters(self):
        """Returns a dictionary of the `HyperParameter` of each parameter
        by name.

        """
        return {
                'alpha': self.alpha,
                'beta': self.beta,
                'expected_number_of_terms': self.expected_number_of_terms
        }


    def uses_em(self):
        """Returns `True` if any parameter is estimated by EM."""
        return any(param.is_em for param in
                self.get_parameters().values())
