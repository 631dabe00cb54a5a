from abc import ABC, abstractmethod


class ConnectivityMetric(ABC):
    """
    Common capability of every connectivity metric.

    A metric turns a ConnectivitySettings object into a fully populated
    Network, or raises; it never returns a partial graph.
    """

    name = None

    @abstractmethod
    def calculate(self, settings):
        """
        :param settings: ConnectivitySettings, trials and run parameters
        :return: Network
        """

    def __repr__(self):
        return f"{type(self).__name__}()"
