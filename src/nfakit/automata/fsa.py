import sys
from collections import namedtuple

from cached_property import threaded_cached_property
from loguru import logger

# Marker constants


class Marker:
    """
    Represents a marker object.

    Markers are compared by identity, so a marker can never be confused with a
    real symbol value, not even the empty string.

    Attributes:
        name (str): The name of the marker.

    Example:
        >>> marker = Marker("start")
        >>> marker.name
        'start'
        >>> repr(marker)
        '<start>'
    """

    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"<{self.name}>"


EPSILON = Marker("EPSILON")


# Exceptions


class AutomatonError(Exception):
    """
    Base class for errors raised while building an automaton from a malformed
    definition.
    """


class UndeclaredStateError(AutomatonError):
    """
    Raised when the initial state, a final state, or the source or destination
    of a transition is not one of the automaton's declared states.

    Attributes:
        state (object): The offending state.
    """

    def __init__(self, state, where):
        AutomatonError.__init__(self, f"Undeclared state {state!r} used as {where}")
        self.state = state


class UndeclaredSymbolError(AutomatonError):
    """
    Raised when a transition is labeled with a symbol that is not in the
    automaton's alphabet, or when EPSILON is declared as an alphabet symbol.

    Attributes:
        symbol (object): The offending symbol.
    """

    def __init__(self, symbol, where):
        AutomatonError.__init__(self, f"Undeclared symbol {symbol!r} used as {where}")
        self.symbol = symbol


# Transitions

_Transition = namedtuple("_Transition", ["src", "label", "dests"])


class Transition(_Transition):
    """
    A single entry of an automaton's transition relation.

    ``label`` is either :data:`EPSILON` or a symbol from the alphabet, and
    ``dests`` is a frozenset of zero or more destination states. Several
    entries may share the same ``(src, label)`` pair.
    """

    __slots__ = ()

    def __new__(cls, src, label, dests):
        return _Transition.__new__(cls, src, label, frozenset(dests))

    def __repr__(self):
        dests = ", ".join(repr(d) for d in _ordered(self.dests))
        return f"{self.src!r} -{self.label!r}-> {{{dests}}}"


def _ordered(items):
    # States and symbols only need to be hashable, so fall back to ordering by
    # repr when they can't be compared with each other
    items = list(items)
    try:
        return sorted(items)
    except TypeError:
        return sorted(items, key=repr)


# Implementation


class NFA:
    """
    NFA (Non-Deterministic Finite Automaton) with epsilon transitions.

    The automaton is built once from a complete definition and is read-only
    afterwards. Every query keeps its working sets local, so a single instance
    can be shared by any number of callers, including callers on different
    threads.

    Attributes:
        states (frozenset): The declared states.
        alphabet (frozenset): The declared input symbols. Never contains
            EPSILON.
        transitions (tuple): The transition relation as a tuple of
            :class:`Transition` objects, in the order they were given.
        initial: The initial state.
        final_states (frozenset): The accepting states.

    Example:
        >>> nfa = NFA(
        ...     states={"p", "q"},
        ...     alphabet={"0", "1"},
        ...     transitions=[("p", "0", {"p"}), ("p", "1", {"p", "q"})],
        ...     initial="p",
        ...     final_states={"q"},
        ... )
        >>> nfa.accept("1011")
        True
        >>> nfa.accept("10")
        False
    """

    def __init__(self, states, alphabet, transitions, initial, final_states):
        """
        Initializes the automaton and checks that the definition is well formed.

        Args:
            states (iterable): The declared states.
            alphabet (iterable): The declared input symbols.
            transitions (iterable): ``(src, label, dests)`` triples, where
                ``label`` is EPSILON or a symbol and ``dests`` is an iterable
                of states.
            initial: The initial state.
            final_states (iterable): The accepting states.

        Raises:
            UndeclaredStateError: If a state used anywhere in the definition
                is not in ``states``.
            UndeclaredSymbolError: If a transition label is not in
                ``alphabet``, or if ``alphabet`` contains EPSILON.
        """
        self.states = frozenset(states)
        self.alphabet = frozenset(alphabet)
        self.transitions = tuple(Transition(*t) for t in transitions)
        self.initial = initial
        self.final_states = frozenset(final_states)

        self._check()
        logger.debug(
            "Built NFA with {} states, {} symbols and {} transitions",
            len(self.states),
            len(self.alphabet),
            len(self.transitions),
        )

    def _check(self):
        states = self.states
        if EPSILON in self.alphabet:
            raise UndeclaredSymbolError(EPSILON, "an alphabet symbol")
        if self.initial not in states:
            raise UndeclaredStateError(self.initial, "the initial state")
        missing = self.final_states.difference(states)
        if missing:
            raise UndeclaredStateError(_ordered(missing)[0], "a final state")

        for trans in self.transitions:
            if trans.src not in states:
                raise UndeclaredStateError(trans.src, f"the source of {trans!r}")
            if trans.label is not EPSILON and trans.label not in self.alphabet:
                raise UndeclaredSymbolError(trans.label, f"the label of {trans!r}")
            missing = trans.dests.difference(states)
            if missing:
                raise UndeclaredStateError(
                    _ordered(missing)[0], f"a destination of {trans!r}"
                )

    @threaded_cached_property
    def table(self):
        """
        A dictionary mapping source states to a dictionary of labels and
        destination states, with the destinations of entries sharing the same
        ``(src, label)`` pair unioned together.
        """
        table = {}
        for src, label, dests in self.transitions:
            table.setdefault(src, {}).setdefault(label, set()).update(dests)
        return {
            src: {label: frozenset(dests) for label, dests in xs.items()}
            for src, xs in table.items()
        }

    def __len__(self):
        return len(self.states)

    def __eq__(self, other):
        if not isinstance(other, NFA):
            return NotImplemented
        return (
            self.initial == other.initial
            and self.states == other.states
            and self.alphabet == other.alphabet
            and self.final_states == other.final_states
            and set(self.triples()) == set(other.triples())
        )

    def __repr__(self):
        return "%s(states=%d, alphabet=%r, transitions=%d, initial=%r, finals=%r)" % (
            type(self).__name__,
            len(self.states),
            _ordered(self.alphabet),
            len(self.transitions),
            self.initial,
            _ordered(self.final_states),
        )

    def dump(self, stream=sys.stdout):
        """
        Prints a textual representation of the NFA to the specified stream.

        The initial state is marked with ``@`` and destinations that are final
        states are followed by ``||``.

        Args:
            stream (file): The stream to print the representation to. Defaults
                to sys.stdout.

        Example:
            >>> nfa.dump()
            @ p
                '0' -> 'p'
                '1' -> 'p', 'q'||
              q
        """
        table = self.table
        for src in _ordered(self.states):
            beg = "@" if src == self.initial else " "
            print(beg, src, file=stream)
            xs = table.get(src, {})
            labels = [EPSILON] if EPSILON in xs else []
            labels.extend(_ordered(label for label in xs if label is not EPSILON))
            for label in labels:
                dests = xs[label]
                end = "||" if self.is_final(dests) else ""
                targets = ", ".join(repr(d) for d in _ordered(dests))
                print("   ", repr(label), "->", targets + end, file=stream)

    def triples(self):
        """
        Generates every single edge of the NFA.

        Yields:
            tuple: A triple (source state, label, destination state).
        """
        for src, trans in self.table.items():
            for label, dests in trans.items():
                for dest in dests:
                    yield src, label, dest

    def all_labels(self):
        """
        Returns the set of all labels used by the transitions, which may
        include EPSILON.
        """
        labels = set()
        for trans in self.table.values():
            labels.update(trans)
        return labels

    def get_labels(self, states):
        """
        Returns the set of labels on the transitions leaving any of the given
        states.

        Args:
            states (iterable): The set of states.

        Returns:
            set: The set of labels.
        """
        table = self.table
        labels = set()
        for state in states:
            if state in table:
                labels.update(table[state])
        return labels

    def possible_transitions(self, state, label):
        """
        Returns the states the automaton can move to from ``state`` on
        ``label``.

        Args:
            state: The source state.
            label: EPSILON or a symbol.

        Returns:
            frozenset: The union of the destinations of every transition
            leaving ``state`` with ``label``. Empty if there is no such
            transition; this is not an error, the branch just has no move.
        """
        xs = self.table.get(state)
        if xs is None:
            return frozenset()
        return xs.get(label, frozenset())

    def is_final(self, states):
        """
        Checks if any of the given states is a final state.

        Args:
            states (iterable): The set of states to check.

        Returns:
            bool: True if any of the states is a final state, False otherwise.
        """
        return not self.final_states.isdisjoint(states)

    def expand(self, states):
        """
        Expands the given states by following epsilon transitions until no
        new state is found.

        The expansion is a worklist over a deduplicated set, so it terminates
        even when the epsilon transitions form a cycle.

        Args:
            states (iterable): The states to expand.

        Returns:
            frozenset: The given states plus every state reachable from them
            through zero or more epsilon transitions.
        """
        table = self.table
        states = set(states)
        frontier = list(states)
        while frontier:
            state = frontier.pop()
            xs = table.get(state)
            if xs is not None and EPSILON in xs:
                new_states = xs[EPSILON].difference(states)
                frontier.extend(new_states)
                states.update(new_states)
        return frozenset(states)

    def epsilon_closure(self, state):
        """
        Returns the epsilon closure of a single state: the state itself and
        every state reachable from it through zero or more epsilon transitions.
        """
        return self.expand((state,))

    def start(self):
        """
        Returns the set of states the automaton is in before reading any
        input: the epsilon closure of the initial state.
        """
        return self.epsilon_closure(self.initial)

    def next_state(self, states, label):
        """
        Takes one step of the simulation.

        The given states are saturated with their epsilon closures, then every
        transition on ``label`` is followed.

        Args:
            states (iterable): The active states.
            label: The input symbol to consume.

        Returns:
            frozenset: The destinations reached by consuming ``label``. The
            result is not epsilon saturated; :meth:`expand` does that.
        """
        if label is EPSILON:
            # Not an input symbol, no branch can consume it
            return frozenset()
        try:
            hash(label)
        except TypeError:
            # Unhashable values can never label a transition
            return frozenset()
        table = self.table
        dest_states = set()
        for state in self.expand(states):
            xs = table.get(state)
            if xs is not None and label in xs:
                dest_states.update(xs[label])
        return frozenset(dest_states)

    def reachable_states(self):
        """
        Returns the set of states reachable from the initial state by any
        sequence of transitions, epsilon or not.
        """
        table = self.table
        seen = {self.initial}
        frontier = [self.initial]
        while frontier:
            state = frontier.pop()
            for dests in table.get(state, {}).values():
                new_states = dests.difference(seen)
                frontier.extend(new_states)
                seen.update(new_states)
        return frozenset(seen)

    def accept(self, symbols, debug=False):
        """
        Checks if the given sequence of symbols is accepted by the automaton.

        All branches are simulated at once: the active set holds every state
        the automaton could be in after the prefix read so far. Symbols with
        no matching transition, including symbols that are not in the
        alphabet or can't be hashed, simply drop the branches that can't
        consume them.

        Args:
            symbols (iterable): The input symbols. A string is read one
                character at a time.
            debug (bool, optional): Whether to log each step of the
                simulation at the DEBUG level. Defaults to False.

        Returns:
            bool: True if the input is accepted, False otherwise.

        Example:
            >>> nfa.accept(["1", "0", "1", "1"])
            True
            >>> nfa.accept([])
            False
        """
        states = self.start()

        for symbol in symbols:
            if debug:
                logger.debug("  {} -> {!r} ->", _ordered(states), symbol)

            states = self.next_state(states, symbol)
            if not states:
                break

        # Input can still be accepted through epsilon moves after the last
        # symbol
        states = self.expand(states)
        accepted = self.is_final(states)
        if debug:
            logger.debug("  {} accepted={}", _ordered(states), accepted)
        return accepted
